"""qmdsync daemon - filesystem watching feeding the sync coordinator."""

from qmdsync.daemon.watcher import DocumentWatcher

__all__ = ["DocumentWatcher"]
