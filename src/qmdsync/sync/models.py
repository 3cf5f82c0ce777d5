"""Sync coordinator models - status, pending changes and inbound events."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from qmdsync.config.models import SyncMode

__all__ = [
    "DebounceState",
    "PendingChangeSet",
    "SyncEvent",
    "SyncEventKind",
    "SyncKind",
    "SyncMode",
    "SyncOutcome",
    "SyncStatus",
]


class SyncKind(Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


class DebounceState(Enum):
    """Change-trigger timer state.

    IDLE: the next change dispatches an incremental sync immediately.
    REFRACTORY: changes only accumulate until the window elapses.
    """

    IDLE = "idle"
    REFRACTORY = "refractory"


@dataclass(frozen=True)
class SyncStatus:
    """Immutable snapshot of the coordinator's status.

    ``pending_count`` counts changes not yet handed to a sync. Changes that
    arrive inside a debounce window are not synced when the window closes;
    they stay pending until the next trigger of any kind, so in on-change mode
    a non-zero count can persist while the directory is quiet.
    """

    last_sync_time: datetime | None = None
    is_running: bool = False
    pending_count: int = 0
    last_error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "last_sync_time": self.last_sync_time.isoformat() if self.last_sync_time else None,
            "is_running": self.is_running,
            "pending_count": self.pending_count,
            "last_error": self.last_error,
        }


@dataclass(frozen=True)
class SyncOutcome:
    """Result of a manual sync request.

    ``started`` is False when the request was dropped because a sync was
    already running.
    """

    started: bool
    status: SyncStatus

    @property
    def ok(self) -> bool:
        return self.started and self.status.last_error is None


@dataclass
class PendingChangeSet:
    """Distinct changed paths plus a deletion flag. Drained whole, never partially."""

    paths: set[str] = field(default_factory=set)
    has_deletions: bool = False

    def __len__(self) -> int:
        return len(self.paths) + (1 if self.has_deletions else 0)

    def __bool__(self) -> bool:
        return bool(self.paths) or self.has_deletions

    def add(self, path: str) -> None:
        self.paths.add(path)

    def mark_deleted(self) -> None:
        self.has_deletions = True

    def drain(self) -> PendingChangeSet:
        """Return the current contents and reset to empty."""
        drained = PendingChangeSet(paths=self.paths, has_deletions=self.has_deletions)
        self.paths = set()
        self.has_deletions = False
        return drained

    def merge(self, other: PendingChangeSet) -> None:
        self.paths |= other.paths
        self.has_deletions = self.has_deletions or other.has_deletions


class SyncEventKind(Enum):
    DOCUMENT_CHANGED = "document_changed"
    DOCUMENT_DELETED = "document_deleted"
    STARTUP = "startup"
    MANUAL = "manual"
    TIMER_TICK = "timer_tick"
    DEBOUNCE_ELAPSED = "debounce_elapsed"


@dataclass
class SyncEvent:
    """An inbound event for the coordinator's control loop."""

    kind: SyncEventKind
    path: str | None = None
    generation: int = 0
    reply: asyncio.Future[SyncOutcome] | None = None
