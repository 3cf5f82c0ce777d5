"""Document watcher using watchfiles for async filesystem monitoring.

Translates filesystem changes under the collection directory into the
coordinator's host events. Debouncing is the coordinator's job; the watcher
forwards every relevant change as it arrives.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from watchfiles import Change, awatch

if TYPE_CHECKING:
    from qmdsync.sync.coordinator import SyncCoordinator

logger = structlog.get_logger()

# Never reported, regardless of extension
IGNORED_DIRS: frozenset[str] = frozenset({".git", ".svn", ".hg", ".obsidian", ".trash"})


def _is_ignored(rel_path: Path) -> bool:
    return any(part in IGNORED_DIRS for part in rel_path.parts)


@dataclass
class DocumentWatcher:
    """Feeds added/modified/deleted files under ``root`` into a coordinator."""

    root: Path
    coordinator: SyncCoordinator

    _watch_task: asyncio.Task[None] | None = field(default=None, init=False)
    _stop_event: asyncio.Event = field(default_factory=asyncio.Event, init=False)

    async def start(self) -> None:
        if self._watch_task is not None:
            return
        self._stop_event.clear()
        self._watch_task = asyncio.create_task(self._watch_loop())
        logger.info("document_watcher_started", root=str(self.root))

    async def stop(self) -> None:
        self._stop_event.set()
        if self._watch_task is not None:
            self._watch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError, asyncio.TimeoutError):
                await asyncio.wait_for(self._watch_task, timeout=2.0)
            self._watch_task = None
        logger.info("document_watcher_stopped")

    def handle_changes(self, changes: Iterable[tuple[Change, str]]) -> int:
        """Forward a batch of raw changes. Returns how many were forwarded."""
        forwarded = 0
        for change, raw_path in changes:
            path = Path(raw_path)
            try:
                rel_path = path.relative_to(self.root)
            except ValueError:
                continue
            if _is_ignored(rel_path):
                continue
            if change == Change.deleted:
                self.coordinator.on_document_deleted(rel_path.as_posix())
            else:
                self.coordinator.on_document_changed(rel_path.as_posix())
            forwarded += 1
        if forwarded:
            logger.debug("changes_forwarded", count=forwarded)
        return forwarded

    async def _watch_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                try:
                    async for changes in awatch(
                        self.root,
                        stop_event=self._stop_event,
                        ignore_permission_denied=True,
                    ):
                        self.handle_changes(changes)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    if self._stop_event.is_set():
                        return
                    logger.error("watcher_error", error=str(e))
                    # Brief backoff before retry
                    await asyncio.sleep(1.0)
        except asyncio.CancelledError:
            pass
