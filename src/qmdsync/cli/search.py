"""qmdsync search, get, related and collections commands."""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from qmdsync.cli.utils import build_client, get_config, run_async
from qmdsync.client.models import SearchOptions, SearchResult
from qmdsync.core.cache import CacheStore
from qmdsync.related import RelatedDocuments


def _render_results(result: SearchResult, console: Console) -> None:
    if not result.items:
        console.print("[yellow]No results[/yellow]")
        return
    table = Table(show_header=True, box=None, padding=(0, 1), pad_edge=False)
    table.add_column("score", style="green", justify="right", width=5)
    table.add_column("title", style="bold")
    table.add_column("path", style="cyan")
    table.add_column("snippet", style="dim", overflow="ellipsis", no_wrap=True)
    for item in result.items:
        table.add_row(f"{item.score:.2f}", item.title, item.path, item.snippet.replace("\n", " "))
    console.print(table)
    console.print(
        f"[dim]{len(result.items)} result(s) for {result.mode} in {result.elapsed_ms:.0f}ms[/dim]"
    )


@click.command()
@click.argument("query")
@click.option(
    "--mode",
    type=click.Choice(["search", "vsearch", "query"]),
    default=None,
    help="search: keyword, vsearch: semantic, query: hybrid with reranking",
)
@click.option("-c", "--collection", help="Restrict to one collection")
@click.option("-n", "--limit", type=int, default=None, help="Maximum results")
@click.option("--min-score", type=float, default=None, help="Minimum score threshold")
@click.option("--full", is_flag=True, help="Return full document content")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def search_command(
    ctx: click.Context,
    query: str,
    mode: str | None,
    collection: str | None,
    limit: int | None,
    min_score: float | None,
    full: bool,
    as_json: bool,
) -> None:
    """Search the index for QUERY."""
    config = get_config(ctx)
    client = build_client(config)
    options = SearchOptions(
        collection=collection,
        limit=limit if limit is not None else config.search.default_result_limit,
        min_score=min_score if min_score is not None else config.search.min_score,
        full=full,
    )
    result = run_async(client.run_search(mode or config.search.default_mode, query, options))

    if as_json:
        click.echo(json.dumps(asdict(result)))
    else:
        _render_results(result, Console())


@click.command()
@click.argument("path_or_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def get_command(ctx: click.Context, path_or_id: str, as_json: bool) -> None:
    """Print a document by path or docid."""
    client = build_client(get_config(ctx))
    document = run_async(client.get_document(path_or_id))
    if as_json:
        click.echo(json.dumps(asdict(document)))
        return
    click.echo(f"# {document.title}  ({document.path})")
    click.echo()
    click.echo(document.content)


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-n", "--limit", type=int, default=None, help="Maximum related documents")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def related_command(ctx: click.Context, path: Path, limit: int | None, as_json: bool) -> None:
    """Show documents related to the file at PATH."""
    config = get_config(ctx)
    root = config.sync.resolved_collection_dir()
    resolved = path.resolve()
    key = resolved.relative_to(root).as_posix() if resolved.is_relative_to(root) else str(path)

    cache: CacheStore[SearchResult] = CacheStore(
        config.cache.ttl_minutes * 60, start_sweeper=False
    )
    related = RelatedDocuments(
        build_client(config),
        cache,
        limit=limit or config.search.related_limit,
        min_score=config.search.related_min_score,
    )
    try:
        result = run_async(related.find(key, path.read_text(encoding="utf-8", errors="replace")))
    finally:
        cache.destroy()

    if as_json:
        click.echo(json.dumps(asdict(result)))
    else:
        _render_results(result, Console())


@click.command()
@click.pass_context
def collections_command(ctx: click.Context) -> None:
    """List collection names known to qmd."""
    client = build_client(get_config(ctx))
    for name in run_async(client.list_collections()):
        click.echo(name)
