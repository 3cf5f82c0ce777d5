"""Related-document lookup memoized per document path."""

from __future__ import annotations

from dataclasses import replace
from pathlib import PurePosixPath

import structlog

from qmdsync.client.models import SearchOptions, SearchResult
from qmdsync.client.ops import IndexClient
from qmdsync.core.cache import CacheStore

logger = structlog.get_logger()

QUERY_TEXT_CHARS = 300


def related_query(path: str, text: str) -> str:
    """Vector query for a document: its name plus the start of its text."""
    return f"{PurePosixPath(path).stem} {text[:QUERY_TEXT_CHARS]}"


class RelatedDocuments:
    """Finds documents semantically close to a given one.

    Owns its own cache so its path keys cannot collide with other lookups.
    """

    def __init__(
        self,
        client: IndexClient,
        cache: CacheStore[SearchResult],
        *,
        limit: int = 5,
        min_score: float = 0.3,
    ) -> None:
        self._client = client
        self._cache = cache
        self._limit = limit
        self._min_score = min_score

    async def find(self, path: str, text: str) -> SearchResult:
        cached = self._cache.get(path)
        if cached is not None:
            logger.debug("related_cache_hit", path=path)
            return cached

        # One extra hit since the document usually finds itself
        result = await self._client.vector_search(
            related_query(path, text),
            SearchOptions(limit=self._limit + 1, min_score=self._min_score),
        )
        items = tuple(i for i in result.items if i.path != path)[: self._limit]
        limited = replace(result, items=items)
        self._cache.set(path, limited)
        return limited

    def invalidate(self, path: str) -> None:
        self._cache.delete(path)
