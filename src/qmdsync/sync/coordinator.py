"""Sync coordinator - decides when qmd's index is updated.

Design:
- Host events (document changed/deleted, startup, manual request) and timer
  ticks are put on one inbound queue consumed by a single control loop
- Single-flight: a trigger that arrives while a sync runs is dropped, not
  queued; whatever it would have synced stays pending for the next trigger
- Change triggers fire on the leading edge, then the debounce timer holds a
  refractory window; changes inside the window only accumulate
- Full sync may spawn embedding generation as a detached task: no result, no
  error propagation, no cancellation. Embedding can take tens of minutes and
  must not hold the single-flight guard
- Sync failures are stored in the status snapshot, never raised to the trigger
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from pathlib import PurePath
from typing import TYPE_CHECKING

import structlog

from qmdsync.config.models import SyncConfig, SyncMode, TimeoutsConfig
from qmdsync.core.logging import new_sync_id
from qmdsync.sync.models import (
    DebounceState,
    PendingChangeSet,
    SyncEvent,
    SyncEventKind,
    SyncKind,
    SyncOutcome,
    SyncStatus,
)

if TYPE_CHECKING:
    from qmdsync.client.ops import IndexClient

logger = structlog.get_logger()

StatusCallback = Callable[[SyncStatus], None]
SleepFn = Callable[[float], Awaitable[None]]


class SyncCoordinator:
    """Long-lived service keeping qmd's index in step with a document directory."""

    def __init__(
        self,
        client: IndexClient,
        config: SyncConfig,
        *,
        incremental_timeout_sec: float = 120.0,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._client = client
        self._config = config
        self._incremental_timeout_sec = incremental_timeout_sec
        self._sleep = sleep

        self._queue: asyncio.Queue[SyncEvent] = asyncio.Queue()
        self._pending = PendingChangeSet()
        self._is_running = False
        self._last_sync_time: datetime | None = None
        self._last_error: str | None = None

        self._debounce_state = DebounceState.IDLE
        self._debounce_generation = 0
        self._debounce_task: asyncio.Task[None] | None = None
        self._schedule_task: asyncio.Task[None] | None = None
        self._loop_task: asyncio.Task[None] | None = None
        self._sync_task: asyncio.Task[None] | None = None
        # Strong references only; outcomes are never inspected
        self._detached: set[asyncio.Task[None]] = set()
        self._on_status_change: StatusCallback | None = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start the control loop and timers. Requires a running event loop."""
        if self._loop_task is not None:
            return
        self._loop_task = asyncio.create_task(self._control_loop(), name="qmdsync-sync-loop")
        self._restart_timers()
        logger.info(
            "sync_coordinator_started",
            mode=self._config.sync_mode.value,
            interval_minutes=self._config.sync_interval_minutes,
            debounce_ms=self._config.debounce_ms,
        )

    async def stop(self) -> None:
        """Stop timers and the control loop, letting an in-flight sync finish."""
        self._cancel_timers()
        if self._loop_task is not None:
            self._loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._loop_task
            self._loop_task = None
        if self._sync_task is not None and not self._sync_task.done():
            await asyncio.wait({self._sync_task})
        logger.info("sync_coordinator_stopped")

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def debounce_state(self) -> DebounceState:
        return self._debounce_state

    def reconfigure(self, config: SyncConfig, timeouts: TimeoutsConfig | None = None) -> None:
        """Apply new settings and restart all timers.

        ``timeouts``, when given, replaces the client's timeouts and the
        incremental update bound. An in-flight sync is not interrupted and
        keeps its guard.
        """
        old = self._config
        self._config = config
        if config.tool_path != old.tool_path:
            self._client.set_tool_path(config.tool_path)
        if timeouts is not None:
            self._client.set_timeouts(timeouts)
            self._incremental_timeout_sec = timeouts.incremental_sec
        if self._loop_task is not None:
            self._restart_timers()
        logger.info(
            "sync_reconfigured",
            mode=config.sync_mode.value,
            interval_minutes=config.sync_interval_minutes,
            debounce_ms=config.debounce_ms,
        )

    # -------------------------------------------------------------------------
    # Inbound host events
    # -------------------------------------------------------------------------

    def on_document_changed(self, path: str) -> None:
        self._queue.put_nowait(SyncEvent(SyncEventKind.DOCUMENT_CHANGED, path=path))

    def on_document_deleted(self, path: str) -> None:
        self._queue.put_nowait(SyncEvent(SyncEventKind.DOCUMENT_DELETED, path=path))

    def on_application_startup(self) -> None:
        self._queue.put_nowait(SyncEvent(SyncEventKind.STARTUP))

    async def on_manual_sync_requested(self) -> SyncOutcome:
        """Run a full sync regardless of mode and wait for its outcome."""
        reply: asyncio.Future[SyncOutcome] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(SyncEvent(SyncEventKind.MANUAL, reply=reply))
        return await reply

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    @property
    def status(self) -> SyncStatus:
        """Copy of the current status."""
        return SyncStatus(
            last_sync_time=self._last_sync_time,
            is_running=self._is_running,
            pending_count=len(self._pending),
            last_error=self._last_error,
        )

    def set_status_callback(self, callback: StatusCallback | None) -> None:
        self._on_status_change = callback

    def _notify(self) -> None:
        if self._on_status_change is None:
            return
        try:
            self._on_status_change(self.status)
        except Exception:
            logger.exception("status_callback_failed")

    @property
    def detached_count(self) -> int:
        return len(self._detached)

    async def wait_detached(self) -> None:
        """Wait for detached embedding runs to end.

        Lets a short-lived host keep its process alive; outcomes stay discarded.
        """
        if self._detached:
            await asyncio.wait(set(self._detached))

    async def wait_idle(self) -> None:
        """Wait until every queued event is handled and no sync is running."""
        await self._queue.join()
        task = self._sync_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    # -------------------------------------------------------------------------
    # Control loop
    # -------------------------------------------------------------------------

    async def _control_loop(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self._handle(event)
            except Exception:
                logger.exception("sync_event_failed", kind=event.kind.value)
            finally:
                self._queue.task_done()

    def _handle(self, event: SyncEvent) -> None:
        mode = self._config.sync_mode
        kind = event.kind

        if kind is SyncEventKind.DOCUMENT_CHANGED:
            if mode is not SyncMode.ON_CHANGE or not self._is_trackable(event.path):
                return
            self._pending.add(event.path or "")
            self._notify()
            self._on_change_trigger()
        elif kind is SyncEventKind.DOCUMENT_DELETED:
            if mode is not SyncMode.ON_CHANGE:
                return
            self._pending.mark_deleted()
            self._notify()
            self._on_change_trigger()
        elif kind is SyncEventKind.DEBOUNCE_ELAPSED:
            self._on_debounce_elapsed(event.generation)
        elif kind is SyncEventKind.STARTUP:
            if mode is SyncMode.ON_STARTUP:
                self._dispatch(SyncKind.FULL)
        elif kind is SyncEventKind.TIMER_TICK:
            if mode is SyncMode.SCHEDULED:
                self._dispatch(SyncKind.FULL)
        elif kind is SyncEventKind.MANUAL:
            self._dispatch(SyncKind.FULL, reply=event.reply)

    def _is_trackable(self, path: str | None) -> bool:
        if not path:
            return False
        extensions = self._config.tracked_extensions
        if not extensions:
            return True
        return PurePath(path).suffix.lower() in {e.lower() for e in extensions}

    # -------------------------------------------------------------------------
    # Debounce
    # -------------------------------------------------------------------------

    def _on_change_trigger(self) -> None:
        if self._debounce_state is DebounceState.IDLE:
            self._dispatch(SyncKind.INCREMENTAL)
            self._debounce_state = DebounceState.REFRACTORY
        self._arm_debounce()

    def _arm_debounce(self) -> None:
        """Start or restart the refractory window."""
        self._debounce_generation += 1
        generation = self._debounce_generation
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.create_task(
            self._debounce_timer(generation), name="qmdsync-debounce"
        )

    async def _debounce_timer(self, generation: int) -> None:
        await self._sleep(self._config.debounce_ms / 1000)
        self._queue.put_nowait(SyncEvent(SyncEventKind.DEBOUNCE_ELAPSED, generation=generation))

    def _on_debounce_elapsed(self, generation: int) -> None:
        if generation != self._debounce_generation:
            return
        if self._is_running:
            # The window only closes once no run is active
            self._arm_debounce()
            return
        self._debounce_state = DebounceState.IDLE
        if self._pending:
            # Held until the next change, startup, timer tick or manual sync
            logger.info("debounce_window_closed_with_pending", pending=len(self._pending))
        else:
            logger.debug("debounce_window_closed")

    # -------------------------------------------------------------------------
    # Timers
    # -------------------------------------------------------------------------

    def _cancel_timers(self) -> None:
        for task in (self._schedule_task, self._debounce_task):
            if task is not None and not task.done():
                task.cancel()
        self._schedule_task = None
        self._debounce_task = None
        self._debounce_generation += 1
        self._debounce_state = DebounceState.IDLE

    def _restart_timers(self) -> None:
        self._cancel_timers()
        cfg = self._config
        if cfg.sync_mode is SyncMode.SCHEDULED and cfg.sync_interval_minutes > 0:
            self._schedule_task = asyncio.create_task(
                self._schedule_loop(cfg.sync_interval_minutes * 60), name="qmdsync-schedule"
            )

    async def _schedule_loop(self, interval_sec: float) -> None:
        while True:
            await self._sleep(interval_sec)
            self._queue.put_nowait(SyncEvent(SyncEventKind.TIMER_TICK))

    # -------------------------------------------------------------------------
    # Sync execution
    # -------------------------------------------------------------------------

    def _dispatch(
        self,
        kind: SyncKind,
        reply: asyncio.Future[SyncOutcome] | None = None,
    ) -> bool:
        """Start a sync unless one is running. Returns whether it started."""
        if self._is_running:
            logger.info("sync_dropped_already_running", kind=kind.value)
            if reply is not None and not reply.done():
                reply.set_result(SyncOutcome(started=False, status=self.status))
            return False

        self._is_running = True
        drained = self._pending.drain()
        self._notify()
        self._sync_task = asyncio.create_task(
            self._execute(kind, drained, reply), name=f"qmdsync-sync-{kind.value}"
        )
        return True

    async def _execute(
        self,
        kind: SyncKind,
        drained: PendingChangeSet,
        reply: asyncio.Future[SyncOutcome] | None,
    ) -> None:
        start = time.monotonic()
        with structlog.contextvars.bound_contextvars(sync_id=new_sync_id(), kind=kind.value):
            logger.info("sync_started", changes=len(drained))
            try:
                if kind is SyncKind.FULL:
                    cfg = self._config
                    await self._client.add_or_update_collection(
                        str(cfg.resolved_collection_dir()), cfg.resolved_collection_name()
                    )
                else:
                    await self._client.update(timeout_sec=self._incremental_timeout_sec)
            except Exception as e:
                self._pending.merge(drained)
                self._last_error = str(e) or type(e).__name__
                logger.warning("sync_failed", error=self._last_error)
            else:
                self._last_sync_time = datetime.now(UTC)
                self._last_error = None
                logger.info("sync_completed", duration=round(time.monotonic() - start, 3))
                if kind is SyncKind.FULL:
                    await self._probe_embeddings()
            finally:
                self._is_running = False
                self._notify()
                if reply is not None and not reply.done():
                    reply.set_result(SyncOutcome(started=True, status=self.status))

    async def _probe_embeddings(self) -> None:
        """Spawn ``qmd embed`` when status reports unembedded documents. Errors are discarded."""
        try:
            status = await self._client.get_status()
        except Exception as e:
            logger.debug("embedding_probe_failed", error=str(e))
            return
        if status.needs_embedding:
            self._spawn_embedding()

    def _spawn_embedding(self) -> None:
        task = asyncio.create_task(self._client.embed(), name="qmdsync-embed")
        self._detached.add(task)
        task.add_done_callback(self._forget_detached)
        logger.info("embedding_started_detached")

    def _forget_detached(self, task: asyncio.Task[None]) -> None:
        self._detached.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("embedding_task_failed", error=str(task.exception()))
