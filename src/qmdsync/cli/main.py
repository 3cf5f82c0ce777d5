"""qmdsync CLI - qmdsync command."""

from pathlib import Path

import click

from qmdsync import __version__
from qmdsync.cli.search import collections_command, get_command, related_command, search_command
from qmdsync.cli.status import check_command, status_command
from qmdsync.cli.sync import sync_command, watch_command
from qmdsync.config.loader import load_config
from qmdsync.core.errors import ConfigError
from qmdsync.core.logging import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="qmdsync")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML config file (default: ./.qmdsync.yaml)",
)
@click.option("--qmd", "tool_path", help="Path to the qmd executable")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_file: Path | None, tool_path: str | None) -> None:
    """qmdsync - keep a qmd search index in step with your documents."""
    ctx.ensure_object(dict)
    overrides = {"sync": {"tool_path": tool_path}} if tool_path else {}
    try:
        config = load_config(config_file=config_file, **overrides)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = config
    configure_logging(config.logging, verbose=verbose)


cli.add_command(search_command, name="search")
cli.add_command(get_command, name="get")
cli.add_command(related_command, name="related")
cli.add_command(collections_command, name="collections")
cli.add_command(status_command, name="status")
cli.add_command(check_command, name="check")
cli.add_command(sync_command, name="sync")
cli.add_command(watch_command, name="watch")


if __name__ == "__main__":
    cli()
