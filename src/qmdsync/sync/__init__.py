"""Sync coordination between a document directory and qmd's index."""

from qmdsync.sync.coordinator import SyncCoordinator
from qmdsync.sync.models import (
    DebounceState,
    PendingChangeSet,
    SyncKind,
    SyncMode,
    SyncOutcome,
    SyncStatus,
)

__all__ = [
    "DebounceState",
    "PendingChangeSet",
    "SyncCoordinator",
    "SyncKind",
    "SyncMode",
    "SyncOutcome",
    "SyncStatus",
]
