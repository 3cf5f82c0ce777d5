"""qmd index client - subprocess invocation and output normalization."""

from qmdsync.client.models import (
    CollectionInfo,
    ConnectionResult,
    Document,
    IndexStatusSnapshot,
    ResultItem,
    SearchOptions,
    SearchResult,
)
from qmdsync.client.ops import IndexClient

__all__ = [
    "CollectionInfo",
    "ConnectionResult",
    "Document",
    "IndexClient",
    "IndexStatusSnapshot",
    "ResultItem",
    "SearchOptions",
    "SearchResult",
]
