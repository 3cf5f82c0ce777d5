"""Argument construction for qmd subcommands.

Commands are built as argv lists and executed without a shell, so every
element reaches the tool verbatim. ``quote_arg`` produces the double-quoted
form used when a command is rendered for logs and error messages.
"""

from __future__ import annotations

from qmdsync.client.models import SearchMode, SearchOptions

_SHELL_ESCAPES = str.maketrans({"\\": "\\\\", '"': '\\"', "$": "\\$", "`": "\\`"})


def quote_arg(arg: str) -> str:
    """Wrap in double quotes, escaping characters special inside them."""
    return '"' + arg.translate(_SHELL_ESCAPES) + '"'


def render_command(argv: list[str]) -> str:
    """Render argv as a copy-pasteable shell line."""
    parts = []
    for arg in argv:
        if arg and all(c.isalnum() or c in "-_./=:@+,%" for c in arg):
            parts.append(arg)
        else:
            parts.append(quote_arg(arg))
    return " ".join(parts)


def search_args(mode: SearchMode, query: str, options: SearchOptions) -> list[str]:
    """Build ``<mode> <query> --json [-c C] [-n N] [--min-score F] [--full]``."""
    args = [mode, query, "--json"]
    if options.collection:
        args.extend(["-c", options.collection])
    if options.limit:
        args.extend(["-n", str(options.limit)])
    if options.min_score:
        args.extend(["--min-score", str(options.min_score)])
    if options.full:
        args.append("--full")
    return args


def get_args(path_or_id: str) -> list[str]:
    return ["get", path_or_id, "--json"]


def status_args(as_json: bool = False) -> list[str]:
    return ["status", "--json"] if as_json else ["status"]


def update_args() -> list[str]:
    return ["update"]


def embed_args() -> list[str]:
    return ["embed"]


def collection_add_args(directory: str, name: str) -> list[str]:
    return ["collection", "add", directory, "--name", name]
