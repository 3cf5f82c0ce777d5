"""Generic TTL cache with lazy expiry and a periodic background sweep."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")

SWEEP_INTERVAL_SEC = 60.0


@dataclass
class _CacheEntry(Generic[T]):
    value: T
    expires_at: float


class CacheStore(Generic[T]):
    """Mapping from string keys to values with a per-entry expiry.

    ``get`` checks expiry itself, so an expired entry is never returned even
    when the sweep has not run yet. The sweep only bounds memory.

    Each logical purpose should own its own instance; keys are not namespaced.
    """

    def __init__(
        self,
        ttl_sec: float = 300.0,
        *,
        sweep_interval_sec: float = SWEEP_INTERVAL_SEC,
        clock: Callable[[], float] = time.monotonic,
        start_sweeper: bool = True,
    ) -> None:
        self._ttl_sec = ttl_sec
        self._clock = clock
        self._entries: dict[str, _CacheEntry[T]] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._sweep_interval_sec = sweep_interval_sec
        self._sweeper: threading.Thread | None = None
        if start_sweeper:
            self._sweeper = threading.Thread(
                target=self._sweep_loop,
                name="qmdsync-cache-sweep",
                daemon=True,
            )
            self._sweeper.start()

    @property
    def ttl_sec(self) -> float:
        return self._ttl_sec

    def get(self, key: str) -> T | None:
        """Return the cached value, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() > entry.expires_at:
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: T, ttl_sec: float | None = None) -> None:
        ttl = self._ttl_sec if ttl_sec is None else ttl_sec
        with self._lock:
            self._entries[key] = _CacheEntry(value=value, expires_at=self._clock() + ttl)

    def has(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if self._clock() > entry.expires_at:
                del self._entries[key]
                return False
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        """Number of stored entries, including expired ones not yet swept."""
        with self._lock:
            return len(self._entries)

    def touch(self, key: str) -> bool:
        """Reset a live entry's expiry to now + default TTL.

        Returns False for a missing key and for an entry already past its
        expiry, which is dropped instead of revived.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            now = self._clock()
            if now > entry.expires_at:
                del self._entries[key]
                return False
            entry.expires_at = now + self._ttl_sec
            return True

    def sweep(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if now > e.expires_at]
            for k in expired:
                del self._entries[k]
        if expired:
            logger.debug("cache_swept", removed=len(expired))
        return len(expired)

    def destroy(self) -> None:
        """Stop the sweep and drop all entries. The instance must not be reused."""
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1.0)
            self._sweeper = None
        self.clear()

    def _sweep_loop(self) -> None:
        while not self._stop_event.wait(self._sweep_interval_sec):
            self.sweep()
