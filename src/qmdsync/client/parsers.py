"""Output parsers for qmd.

Search, vsearch, query and get emit JSON (``--json``) whose shape varies
between tool versions. ``status`` emits fixed-format plain text on some
versions and JSON on others; the two status parsers are independent and are
not interchangeable with the search normalizer.
"""

from __future__ import annotations

import json
import re
from pathlib import PurePosixPath
from typing import Any

from qmdsync.client.models import (
    CollectionInfo,
    Document,
    IndexStatusSnapshot,
    ResultItem,
    SearchResult,
)
from qmdsync.core.errors import OutputParseError

SNIPPET_CHARS = 200
NO_RESULTS_MARKER = "No results"
NEEDS_EMBEDDING_MARKER = "need embedding"

_COLLECTION_URI = re.compile(r"^qmd://[^/]+/")


def clean_path(path: str) -> str:
    """Strip a ``qmd://<collection>/`` prefix."""
    return _COLLECTION_URI.sub("", path)


def title_from_path(path: str) -> str:
    """Filename without its extension."""
    name = PurePosixPath(path).name or path
    return PurePosixPath(name).stem if "." in name.lstrip(".") else name


def _parse_score(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, int | float):
        return float(value)
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return 0.0


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _load_json(output: str) -> Any:
    try:
        return json.loads(output)
    except json.JSONDecodeError as e:
        raise OutputParseError.invalid_json(str(e), output) from e


# =============================================================================
# Search results
# =============================================================================


def normalize_item(item: dict[str, Any]) -> ResultItem:
    """Normalize one raw hit, applying field fallbacks."""
    path = clean_path(_text(item.get("path")) or _text(item.get("file")))
    content = _text(item.get("content"))
    return ResultItem(
        document_id=str(item.get("docid") or item.get("id") or ""),
        path=path,
        absolute_path=_text(item.get("absolutePath")) or _text(item.get("absolute_path")) or path,
        title=_text(item.get("title")) or title_from_path(path),
        score=_parse_score(item.get("score")),
        snippet=_text(item.get("snippet")) or content[:SNIPPET_CHARS],
        collection=_text(item.get("collection")) or "default",
        extra_context=_text(item.get("context")) or None,
    )


def normalize_search_payload(
    data: Any,
    *,
    query: str = "",
    mode: str = "search",
    elapsed_ms: float = 0.0,
) -> SearchResult:
    """Normalize a decoded payload: a bare list, or an object with results/documents."""
    if isinstance(data, list):
        raw_items: Any = data
    elif isinstance(data, dict):
        raw_items = data.get("results") or data.get("documents") or []
        query = _text(data.get("query")) or query
        elapsed_ms = _parse_score(data.get("elapsed")) or elapsed_ms
    else:
        raise OutputParseError.invalid_json(
            f"expected list or object, got {type(data).__name__}", json.dumps(data)
        )

    items = tuple(normalize_item(i) for i in raw_items if isinstance(i, dict))
    return SearchResult(items=items, query=query, mode=mode, elapsed_ms=elapsed_ms)


def parse_search_output(
    stdout: str,
    *,
    query: str = "",
    mode: str = "search",
    elapsed_ms: float = 0.0,
) -> SearchResult:
    """Parse raw search stdout. Empty output and "No results" mean zero hits."""
    trimmed = stdout.strip()
    if not trimmed or trimmed.startswith(NO_RESULTS_MARKER) or trimmed == "[]":
        return SearchResult(query=query, mode=mode, elapsed_ms=elapsed_ms)
    return normalize_search_payload(
        _load_json(trimmed), query=query, mode=mode, elapsed_ms=elapsed_ms
    )


def parse_document_output(stdout: str) -> Document:
    data = _load_json(stdout.strip())
    if isinstance(data, list) and data:
        data = data[0]
    if not isinstance(data, dict):
        raise OutputParseError.invalid_json("expected a document object", stdout)
    item = normalize_item(data)
    return Document(
        document_id=item.document_id,
        path=item.path,
        absolute_path=item.absolute_path,
        title=item.title,
        content=_text(data.get("content")) or _text(data.get("body")),
        collection=item.collection,
        extra_context=item.extra_context,
    )


# =============================================================================
# Status: plain text
# =============================================================================

# Index: /home/me/.cache/qmd/index.sqlite
_INDEX_LINE = re.compile(r"^Index:\s+(.+)$")
#   Total:    1293 files indexed
_TOTAL_LINE = re.compile(r"Total:\s+(\d+)\s+files")
#   Vectors:  11203 embedded
_VECTORS_LINE = re.compile(r"Vectors:\s+(\d+)\s+embedded")
#   notes (qmd://notes/)
_COLLECTION_HEADER = re.compile(r"^\s+(\S+)\s+\((qmd://[^/]+/)\)")
#     Pattern:  **/*.md
_PATTERN_LINE = re.compile(r"Pattern:\s+(.+)$")
#     Files:    1293 (updated 8m ago)
_FILES_LINE = re.compile(r"Files:\s+(\d+)(?:\s+\(updated\s+([^)]+)\))?")


def parse_status_text(output: str) -> IndexStatusSnapshot:
    """Parse the fixed-format text of ``qmd status``.

    A collection block starts at its header line and collects the Pattern and
    Files lines that follow; the next header or end of input closes it.
    Unrecognized lines are skipped.
    """
    index_path = ""
    total_documents = 0
    total_embeddings = 0
    collections: list[CollectionInfo] = []
    current: dict[str, Any] | None = None

    for line in output.splitlines():
        if m := _INDEX_LINE.match(line):
            index_path = m.group(1).strip()
            continue
        if m := _TOTAL_LINE.search(line):
            total_documents = int(m.group(1))
            continue
        if m := _VECTORS_LINE.search(line):
            total_embeddings = int(m.group(1))
            continue
        if m := _COLLECTION_HEADER.match(line):
            if current is not None:
                collections.append(CollectionInfo(**current))
            current = {"name": m.group(1), "locator": m.group(2)}
            continue
        if current is None:
            continue
        if m := _PATTERN_LINE.search(line):
            current["glob_mask"] = m.group(1).strip()
            continue
        if m := _FILES_LINE.search(line):
            current["file_count"] = int(m.group(1))
            current["last_updated_text"] = (m.group(2) or "").strip()

    if current is not None:
        collections.append(CollectionInfo(**current))

    return IndexStatusSnapshot(
        index_path=index_path,
        total_documents=total_documents,
        total_embeddings=total_embeddings,
        collections=tuple(collections),
        needs_embedding=NEEDS_EMBEDDING_MARKER in output,
    )


# =============================================================================
# Status: JSON
# =============================================================================


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_status_json(output: str) -> IndexStatusSnapshot:
    """Parse ``qmd status --json`` from tool versions that support it."""
    data = _load_json(output.strip())
    if not isinstance(data, dict):
        raise OutputParseError.invalid_json("expected a status object", output)

    collections = []
    for raw in data.get("collections") or []:
        if not isinstance(raw, dict):
            continue
        name = _text(raw.get("name"))
        collections.append(
            CollectionInfo(
                name=name,
                locator=_text(raw.get("path")) or _text(raw.get("uri")) or f"qmd://{name}/",
                glob_mask=_text(raw.get("mask")) or _text(raw.get("pattern")),
                file_count=_int(raw.get("fileCount", raw.get("files"))),
                last_updated_text=_text(raw.get("lastUpdated")) or _text(raw.get("updated")),
            )
        )

    needs = data.get("needsEmbedding", data.get("needs_embedding"))
    return IndexStatusSnapshot(
        index_path=_text(data.get("indexPath")) or _text(data.get("index")),
        total_documents=_int(data.get("totalDocuments", data.get("documents"))),
        total_embeddings=_int(data.get("totalEmbeddings", data.get("vectors"))),
        collections=tuple(collections),
        needs_embedding=bool(needs) if needs is not None else _int(data.get("pendingEmbeddings")) > 0,
    )


def parse_status_output(output: str, status_format: str = "auto") -> IndexStatusSnapshot:
    """Dispatch to the text or JSON status parser."""
    if status_format == "json" or (status_format == "auto" and output.lstrip().startswith("{")):
        return parse_status_json(output)
    return parse_status_text(output)
