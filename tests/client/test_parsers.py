"""Tests for client/parsers.py module.

Covers:
- search output normalization across payload shapes
- per-item field fallbacks
- plain-text and JSON status parsing
"""

from __future__ import annotations

import json

import pytest

from qmdsync.client.models import CollectionInfo, SearchResult
from qmdsync.client.parsers import (
    clean_path,
    normalize_item,
    parse_document_output,
    parse_search_output,
    parse_status_json,
    parse_status_output,
    parse_status_text,
    title_from_path,
)
from qmdsync.core.errors import OutputParseError

STATUS_TEXT = """\
QMD Status

Index: /home/user/.cache/qmd/index.sqlite
Size:  48.2 MB

Documents
  Total:    1293 files indexed
  Vectors:  11203 embedded
  Pending:  12 need embedding (run 'qmd embed')

Collections
  notes (qmd://notes/)
    Pattern:  **/*.md
    Files:    1200 (updated 8m ago)
  journal (qmd://journal/)
    Pattern:  daily/*.md
    Files:    93
"""


class TestEmptyOutputs:
    @pytest.mark.parametrize("raw", ["[]", '{"results":[]}', '{"documents":[]}'])
    def test_empty_shapes_normalize_identically(self, raw: str) -> None:
        result = parse_search_output(raw, query="q", mode="search")
        assert result == SearchResult(items=(), query="q", mode="search", elapsed_ms=0.0)

    @pytest.mark.parametrize("raw", ["", "   \n", "No results found for 'x'"])
    def test_blank_and_no_results_marker(self, raw: str) -> None:
        assert parse_search_output(raw).items == ()

    def test_invalid_json_raises_parse_error(self) -> None:
        with pytest.raises(OutputParseError) as exc_info:
            parse_search_output("{not json")
        assert exc_info.value.kind == "ParseError"


class TestPayloadShapes:
    ITEM = {"docid": "#abc", "path": "a.md", "score": 0.9, "snippet": "hello"}

    @pytest.mark.parametrize(
        "payload",
        [
            [ITEM],
            {"results": [ITEM]},
            {"documents": [ITEM]},
        ],
    )
    def test_all_shapes_yield_same_items(self, payload: object) -> None:
        result = parse_search_output(json.dumps(payload), query="q", mode="vsearch")
        assert len(result.items) == 1
        assert result.items[0].document_id == "#abc"
        assert result.mode == "vsearch"

    def test_object_query_and_elapsed_used(self) -> None:
        raw = json.dumps({"results": [], "query": "from tool", "elapsed": 12})
        result = parse_search_output(raw, query="asked", elapsed_ms=99)
        assert result.query == "from tool"
        assert result.elapsed_ms == 12.0

    def test_non_dict_items_skipped(self) -> None:
        raw = json.dumps([self.ITEM, "junk", 3])
        assert len(parse_search_output(raw).items) == 1


class TestNormalizeItem:
    def test_docid_falls_back_to_id_then_empty(self) -> None:
        assert normalize_item({"id": "7", "path": "a.md"}).document_id == "7"
        assert normalize_item({"path": "a.md"}).document_id == ""

    def test_path_falls_back_to_file_and_strips_uri(self) -> None:
        item = normalize_item({"file": "qmd://notes/projects/plan.md"})
        assert item.path == "projects/plan.md"
        assert item.absolute_path == "projects/plan.md"
        assert item.title == "plan"

    def test_explicit_absolute_path_and_title(self) -> None:
        item = normalize_item(
            {"path": "a.md", "absolutePath": "/v/a.md", "title": "Alpha", "collection": "v"}
        )
        assert item.absolute_path == "/v/a.md"
        assert item.title == "Alpha"
        assert item.collection == "v"

    def test_snake_case_absolute_path(self) -> None:
        assert normalize_item({"path": "a.md", "absolute_path": "/x/a.md"}).absolute_path == "/x/a.md"

    @pytest.mark.parametrize(
        ("score", "expected"),
        [(0.75, 0.75), ("0.5", 0.5), (" 1 ", 1.0), ("high", 0.0), (None, 0.0), (True, 0.0)],
    )
    def test_score_parsing(self, score: object, expected: float) -> None:
        assert normalize_item({"path": "a.md", "score": score}).score == expected

    def test_snippet_falls_back_to_content_prefix(self) -> None:
        item = normalize_item({"path": "a.md", "content": "x" * 500})
        assert item.snippet == "x" * 200

    def test_snippet_empty_without_content(self) -> None:
        assert normalize_item({"path": "a.md"}).snippet == ""

    def test_defaults(self) -> None:
        item = normalize_item({"path": "a.md"})
        assert item.collection == "default"
        assert item.extra_context is None


class TestPathHelpers:
    def test_clean_path_only_strips_prefix(self) -> None:
        assert clean_path("qmd://vault/dir/x.md") == "dir/x.md"
        assert clean_path("dir/qmd://vault/x.md") == "dir/qmd://vault/x.md"

    @pytest.mark.parametrize(
        ("path", "title"),
        [("dir/note.md", "note"), ("a.b.md", "a.b"), ("README", "README"), (".hidden", ".hidden")],
    )
    def test_title_from_path(self, path: str, title: str) -> None:
        assert title_from_path(path) == title


class TestParseDocument:
    def test_document(self) -> None:
        raw = json.dumps(
            {"docid": "#1", "path": "qmd://notes/a.md", "content": "# A\nbody", "collection": "notes"}
        )
        doc = parse_document_output(raw)
        assert doc.path == "a.md"
        assert doc.title == "a"
        assert doc.content == "# A\nbody"

    def test_non_object_raises(self) -> None:
        with pytest.raises(OutputParseError):
            parse_document_output('"just a string"')


class TestParseStatusText:
    def test_totals_and_index(self) -> None:
        status = parse_status_text(STATUS_TEXT)
        assert status.index_path == "/home/user/.cache/qmd/index.sqlite"
        assert status.total_documents == 1293
        assert status.total_embeddings == 11203
        assert status.needs_embedding is True

    def test_two_blocks_without_cross_contamination(self) -> None:
        status = parse_status_text(STATUS_TEXT)
        assert status.collections == (
            CollectionInfo(
                name="notes",
                locator="qmd://notes/",
                glob_mask="**/*.md",
                file_count=1200,
                last_updated_text="8m ago",
            ),
            CollectionInfo(
                name="journal",
                locator="qmd://journal/",
                glob_mask="daily/*.md",
                file_count=93,
                last_updated_text="",
            ),
        )

    def test_block_lines_before_any_header_ignored(self) -> None:
        status = parse_status_text("    Pattern:  *.md\n    Files:    3\n")
        assert status.collections == ()

    def test_empty_output(self) -> None:
        status = parse_status_text("")
        assert status.total_documents == 0
        assert status.collections == ()
        assert status.needs_embedding is False


class TestParseStatusJson:
    def test_json_status(self) -> None:
        raw = json.dumps(
            {
                "indexPath": "/idx.sqlite",
                "totalDocuments": 10,
                "totalEmbeddings": 40,
                "needsEmbedding": False,
                "collections": [
                    {"name": "notes", "path": "qmd://notes/", "mask": "**/*.md", "fileCount": 10}
                ],
            }
        )
        status = parse_status_json(raw)
        assert status.index_path == "/idx.sqlite"
        assert status.total_documents == 10
        assert status.collections[0].glob_mask == "**/*.md"
        assert status.collections[0].file_count == 10
        assert status.needs_embedding is False

    def test_invalid_json(self) -> None:
        with pytest.raises(OutputParseError):
            parse_status_json("Index: /x")


class TestParseStatusOutput:
    def test_auto_detects_json(self) -> None:
        assert parse_status_output('{"totalDocuments": 3}').total_documents == 3

    def test_auto_falls_back_to_text(self) -> None:
        assert parse_status_output(STATUS_TEXT).total_documents == 1293

    def test_forced_text_does_not_parse_json(self) -> None:
        assert parse_status_output('{"totalDocuments": 3}', "text").total_documents == 0
