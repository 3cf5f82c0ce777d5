"""qmdsync sync and watch commands."""

from __future__ import annotations

import asyncio
import contextlib
import json
import signal
from pathlib import Path
from typing import Any

import click
import structlog
from rich.console import Console

from qmdsync.cli.utils import build_client, get_config, run_async
from qmdsync.config.loader import load_config
from qmdsync.config.models import QmdSyncConfig
from qmdsync.core.errors import ConfigError
from qmdsync.daemon.watcher import DocumentWatcher
from qmdsync.sync.coordinator import SyncCoordinator
from qmdsync.sync.models import SyncOutcome

logger = structlog.get_logger()


def _build_coordinator(config: QmdSyncConfig) -> SyncCoordinator:
    return SyncCoordinator(
        build_client(config),
        config.sync,
        incremental_timeout_sec=config.timeouts.incremental_sec,
    )


async def _sync_once(config: QmdSyncConfig, wait_embed: bool = True) -> SyncOutcome:
    coordinator = _build_coordinator(config)
    await coordinator.start()
    try:
        outcome = await coordinator.on_manual_sync_requested()
        if wait_embed:
            await coordinator.wait_detached()
        return outcome
    finally:
        await coordinator.stop()


@click.command()
@click.option(
    "--wait-embed/--no-wait-embed",
    default=True,
    show_default=True,
    help="Wait for embedding generation started by this sync. Without waiting, "
    "an unfinished embed run is stopped when the command exits.",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def sync_command(ctx: click.Context, wait_embed: bool, as_json: bool) -> None:
    """Register or update the collection now, regardless of sync mode."""
    config = get_config(ctx)
    console = Console(stderr=True)
    with console.status("[cyan]Syncing...[/cyan]", spinner="dots"):
        outcome = run_async(_sync_once(config, wait_embed))

    if as_json:
        click.echo(json.dumps({"started": outcome.started, **outcome.status.to_dict()}))
    if outcome.status.last_error:
        raise click.ClickException(f"qmd sync failed: {outcome.status.last_error}")
    if not as_json:
        console.print("  [green]✓[/green] Index updated")


def reload_config(
    coordinator: SyncCoordinator, root: Path, reload_overrides: dict[str, Any]
) -> bool:
    """Re-read config files and apply sync settings and timeouts to a running watch.

    The watched directory stays fixed. Returns False if the new config is invalid,
    in which case the running settings are kept.
    """
    try:
        fresh = load_config(**reload_overrides)
    except ConfigError as e:
        logger.error("config_reload_failed", error=str(e))
        return False
    coordinator.reconfigure(
        fresh.sync.model_copy(update={"collection_dir": str(root)}),
        timeouts=fresh.timeouts,
    )
    return True


async def _watch(config: QmdSyncConfig, root: Path, reload_overrides: dict[str, Any]) -> None:
    coordinator = _build_coordinator(config)
    watcher = DocumentWatcher(root=root, coordinator=coordinator)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()

    with contextlib.suppress(NotImplementedError, AttributeError):
        loop.add_signal_handler(signal.SIGHUP, reload_config, coordinator, root, reload_overrides)
        loop.add_signal_handler(signal.SIGTERM, stop.set)

    await coordinator.start()
    coordinator.on_application_startup()
    await watcher.start()
    try:
        await stop.wait()
    finally:
        await watcher.stop()
        await coordinator.stop()


@click.command()
@click.argument(
    "directory",
    default=None,
    required=False,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.pass_context
def watch_command(ctx: click.Context, directory: Path | None) -> None:
    """Watch DIRECTORY and keep its qmd collection in sync.

    Triggers follow the configured sync mode. SIGHUP reloads the config.
    """
    config = get_config(ctx)
    root = (directory or config.sync.resolved_collection_dir()).resolve()
    config = config.model_copy(
        update={"sync": config.sync.model_copy(update={"collection_dir": str(root)})}
    )
    console = Console(stderr=True)
    console.print(
        f"Watching [cyan]{root}[/cyan] (mode: {config.sync.sync_mode.value}). Ctrl-C to stop."
    )
    params = ctx.parent.params if ctx.parent else {}
    reload_overrides: dict[str, Any] = {"config_file": params.get("config_file")}
    if params.get("tool_path"):
        reload_overrides["sync"] = {"tool_path": params["tool_path"]}
    with contextlib.suppress(KeyboardInterrupt):
        run_async(_watch(config, root, reload_overrides))
