"""Core module exports."""

from qmdsync.core.cache import CacheStore
from qmdsync.core.errors import (
    ConfigError,
    ErrorCode,
    IndexClientError,
    OutputParseError,
    QmdSyncError,
    ToolCommandError,
    ToolNotFoundError,
    ToolTimeoutError,
    UnknownToolError,
)
from qmdsync.core.logging import configure_logging, new_sync_id

__all__ = [
    # Cache
    "CacheStore",
    # Errors
    "ConfigError",
    "ErrorCode",
    "IndexClientError",
    "OutputParseError",
    "QmdSyncError",
    "ToolCommandError",
    "ToolNotFoundError",
    "ToolTimeoutError",
    "UnknownToolError",
    # Logging
    "configure_logging",
    "new_sync_id",
]
