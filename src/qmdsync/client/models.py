"""Index client models - search results, documents and index status."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

SearchMode = Literal["search", "vsearch", "query"]


@dataclass(frozen=True)
class SearchOptions:
    """Optional structural flags for a search subcommand."""

    collection: str | None = None
    limit: int | None = None
    min_score: float | None = None
    full: bool = False


@dataclass(frozen=True)
class ResultItem:
    """A single ranked hit."""

    document_id: str
    path: str
    absolute_path: str
    title: str
    score: float
    snippet: str
    collection: str = "default"
    extra_context: str | None = None


@dataclass(frozen=True)
class SearchResult:
    """Normalized result of search, vsearch or query."""

    items: tuple[ResultItem, ...] = ()
    query: str = ""
    mode: str = "search"
    elapsed_ms: float = 0.0

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class Document:
    """A document fetched with ``get``."""

    document_id: str
    path: str
    absolute_path: str
    title: str
    content: str
    collection: str = "default"
    extra_context: str | None = None


@dataclass(frozen=True)
class CollectionInfo:
    name: str
    locator: str
    glob_mask: str = ""
    file_count: int = 0
    last_updated_text: str = ""


@dataclass(frozen=True)
class IndexStatusSnapshot:
    """Parsed ``qmd status`` output."""

    index_path: str = ""
    total_documents: int = 0
    total_embeddings: int = 0
    collections: tuple[CollectionInfo, ...] = ()
    needs_embedding: bool = False

    @property
    def collection_names(self) -> list[str]:
        return [c.name for c in self.collections]


@dataclass(frozen=True)
class ConnectionResult:
    """Outcome of a connectivity test. Never carries an exception."""

    ok: bool
    message: str = ""
    status: IndexStatusSnapshot | None = field(default=None, compare=False)
