"""structlog setup for qmdsync.

Every sync attempt binds a ``sync_id`` (see ``new_sync_id``) into structlog
contextvars, so the lines of one attempt, including the qmd commands it ran
and their stderr, can be grepped out of a shared daemon log.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from qmdsync.config.models import LoggingConfig, LogOutputConfig

# Third-party loggers too chatty for a long-running watch
_QUIET_LOGGERS = ("watchfiles.main", "watchfiles.watcher", "asyncio")


def new_sync_id() -> str:
    """Short correlation ID for one sync attempt."""
    return uuid4().hex[:12]


def _level(name: str | None, default: int) -> int:
    if not name:
        return default
    return logging.getLevelNamesMapping().get(name.upper(), default)


def _handler_for(output: LogOutputConfig) -> logging.Handler:
    if output.destination == "stderr":
        return logging.StreamHandler(sys.stderr)
    if output.destination == "stdout":
        return logging.StreamHandler(sys.stdout)
    path = Path(output.destination).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a", encoding="utf-8")


def configure_logging(config: LoggingConfig | None = None, *, verbose: bool = False) -> None:
    """Route structlog through stdlib handlers, one per configured output.

    ``verbose`` (the CLI's ``-v``) forces DEBUG on every output, overriding
    per-output levels.
    """
    from qmdsync.config.models import LoggingConfig

    config = config or LoggingConfig()
    root_level = logging.DEBUG if verbose else _level(config.level, logging.INFO)

    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
    ]
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfigured on SIGHUP reload, so loggers must not be cached
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(root_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    for output in config.outputs:
        is_console = output.destination in ("stderr", "stdout")
        if output.format == "json":
            renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        else:
            renderer = structlog.dev.ConsoleRenderer(
                colors=is_console and sys.stderr.isatty(),
                pad_event_to=0,
                pad_level=False,
            )
        handler = _handler_for(output)
        handler.setLevel(root_level if verbose else _level(output.level, root_level))
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=shared)
        )
        root.addHandler(handler)
