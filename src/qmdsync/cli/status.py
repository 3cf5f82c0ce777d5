"""qmdsync status and check commands."""

from __future__ import annotations

import json
from dataclasses import asdict

import click
from rich.console import Console
from rich.table import Table

from qmdsync.cli.utils import build_client, get_config, run_async


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status_command(ctx: click.Context, as_json: bool) -> None:
    """Show qmd index status and collections."""
    client = build_client(get_config(ctx))
    status = run_async(client.get_status())

    if as_json:
        click.echo(json.dumps(asdict(status)))
        return

    console = Console()
    console.print(f"Index: [cyan]{status.index_path or 'unknown'}[/cyan]")
    console.print(f"Documents: {status.total_documents}")
    console.print(f"Vectors: {status.total_embeddings}")
    if status.needs_embedding:
        console.print("[yellow]Some documents need embedding[/yellow]")

    if not status.collections:
        console.print("[dim]No collections[/dim]")
        return
    table = Table(show_header=True, box=None, padding=(0, 1), pad_edge=False)
    table.add_column("collection", style="bold")
    table.add_column("pattern", style="cyan")
    table.add_column("files", justify="right")
    table.add_column("updated", style="dim")
    for c in status.collections:
        table.add_row(c.name, c.glob_mask, str(c.file_count), c.last_updated_text)
    console.print(table)


@click.command()
@click.pass_context
def check_command(ctx: click.Context) -> None:
    """Test that qmd can be run."""
    client = build_client(get_config(ctx))
    result = run_async(client.test_connection())
    if result.ok:
        click.echo(f"OK: {result.message}")
        return
    raise click.ClickException(f"qmd check failed: {result.message}")
