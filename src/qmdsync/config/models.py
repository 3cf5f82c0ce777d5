"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (QMDSYNC__SECTION__KEY)
3. Repo YAML (.qmdsync.yaml in the working directory)
4. Global YAML (~/.config/qmdsync/config.yaml)
5. Built-in defaults (this file)

Examples:
    QMDSYNC__SYNC__TOOL_PATH=/opt/qmd/bin/qmd
    QMDSYNC__SYNC__SYNC_MODE=scheduled
    QMDSYNC__SEARCH__DEFAULT_RESULT_LIMIT=20
"""

from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
SearchMode = Literal["search", "vsearch", "query"]


class SyncMode(str, Enum):
    """Which triggers are active for the sync coordinator."""

    OFF = "off"
    ON_CHANGE = "on-change"
    ON_STARTUP = "on-startup"
    SCHEDULED = "scheduled"


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        QMDSYNC__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class SyncConfig(BaseModel):
    """Sync coordinator configuration.

    Env vars:
        QMDSYNC__SYNC__TOOL_PATH: Path to the qmd executable
        QMDSYNC__SYNC__SYNC_MODE: off, on-change, on-startup, scheduled
        QMDSYNC__SYNC__SYNC_INTERVAL_MINUTES: Scheduled sync interval
        QMDSYNC__SYNC__DEBOUNCE_MS: Refractory window after a change-triggered sync
    """

    tool_path: str = Field(
        default="qmd",
        description="qmd executable. A bare name is resolved through PATH.",
    )
    sync_mode: SyncMode = Field(
        default=SyncMode.ON_STARTUP,
        description="Which triggers start a sync. Manual sync works in every mode.",
    )
    sync_interval_minutes: float = Field(
        default=10,
        description="Interval for scheduled mode. 0 disables the timer.",
    )
    debounce_ms: int = Field(
        default=5000,
        description="Window after a change-triggered sync during which further "
        "changes only accumulate.",
    )
    collection_dir: str | None = Field(
        default=None,
        description="Directory registered as a collection on full sync. Default: working directory.",
    )
    collection_name: str | None = Field(
        default=None,
        description="Collection name. Default: name of collection_dir.",
    )
    tracked_extensions: list[str] = Field(
        default_factory=lambda: [".md"],
        description="Change notifications for other file types are ignored.",
    )

    @field_validator("sync_mode", mode="before")
    @classmethod
    def normalize_mode(cls, v: object) -> object:
        # Older configs call on-change "on-save"
        if isinstance(v, str) and v.strip().lower() == "on-save":
            return SyncMode.ON_CHANGE.value
        return v

    @field_validator("sync_interval_minutes")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"Interval must be >= 0, got {v}")
        return v

    @field_validator("debounce_ms")
    @classmethod
    def validate_debounce(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Debounce must be >= 0, got {v}")
        return v

    def resolved_collection_dir(self) -> Path:
        return Path(self.collection_dir).expanduser().resolve() if self.collection_dir else Path.cwd()

    def resolved_collection_name(self) -> str:
        return self.collection_name or self.resolved_collection_dir().name


class SearchConfig(BaseModel):
    """Search defaults.

    Env vars:
        QMDSYNC__SEARCH__DEFAULT_RESULT_LIMIT: Default number of results
        QMDSYNC__SEARCH__MIN_SCORE: Default minimum score
    """

    default_mode: SearchMode = Field(
        default="query",
        description="Ranking mode used when none is given. query is hybrid with reranking.",
    )
    default_result_limit: int = Field(default=10, description="Default number of results.")
    min_score: float = Field(default=0.3, description="Default minimum score threshold.")
    related_limit: int = Field(default=5, description="Related documents shown per document.")
    related_min_score: float = Field(default=0.3)


class CacheConfig(BaseModel):
    """Result cache configuration.

    Env vars:
        QMDSYNC__CACHE__TTL_MINUTES: Lifetime of cached lookups
    """

    ttl_minutes: float = Field(default=5, description="Lifetime of cached lookups.")
    sweep_interval_sec: float = Field(
        default=60.0,
        description="How often expired entries are purged. Expiry is checked on read regardless.",
    )


class TimeoutsConfig(BaseModel):
    """Subprocess timeouts, per operation class.

    Env vars:
        QMDSYNC__TIMEOUTS__EMBED_SEC: Embedding generation bound
    """

    probe_sec: float = Field(default=30.0, description="status and connectivity probes.")
    search_sec: float = Field(default=300.0, description="search, vsearch, query, get.")
    update_sec: float = Field(default=300.0, description="Full sync: collection add or update.")
    incremental_sec: float = Field(default=120.0, description="Change-triggered update.")
    embed_sec: float = Field(
        default=1800.0,
        description="Embedding generation. Runs detached, never blocks a sync.",
    )
    status_format: Literal["auto", "text", "json"] = Field(
        default="auto",
        description="Shape of 'qmd status' output. auto detects JSON by its leading brace.",
    )


class QmdSyncConfig(BaseModel):
    """Root configuration for qmdsync."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
