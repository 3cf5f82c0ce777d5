"""Config module exports."""

from qmdsync.config.loader import load_config
from qmdsync.config.models import (
    CacheConfig,
    LoggingConfig,
    QmdSyncConfig,
    SearchConfig,
    SyncConfig,
    SyncMode,
    TimeoutsConfig,
)

__all__ = [
    "load_config",
    "QmdSyncConfig",
    "SyncConfig",
    "SyncMode",
    "SearchConfig",
    "CacheConfig",
    "TimeoutsConfig",
    "LoggingConfig",
]
