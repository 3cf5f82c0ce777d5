"""Shared CLI helpers."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

import click

from qmdsync.client.ops import IndexClient
from qmdsync.config.models import QmdSyncConfig
from qmdsync.core.errors import QmdSyncError

T = TypeVar("T")


def get_config(ctx: click.Context) -> QmdSyncConfig:
    config: QmdSyncConfig = ctx.obj["config"]
    return config


def build_client(config: QmdSyncConfig) -> IndexClient:
    return IndexClient(config.sync.tool_path, config.timeouts)


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning qmdsync errors into click errors."""
    try:
        return asyncio.run(coro)
    except QmdSyncError as e:
        raise click.ClickException(str(e)) from e
