"""Tests for client/ops.py module."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from qmdsync.client.models import IndexStatusSnapshot, SearchOptions
from qmdsync.client.ops import IndexClient
from qmdsync.config.models import TimeoutsConfig
from qmdsync.core.errors import (
    OutputParseError,
    ToolCommandError,
    ToolNotFoundError,
    ToolTimeoutError,
    UnknownToolError,
)

STATUS_TEXT = """\
Index: /idx.sqlite
  Total:    2 files indexed
  Vectors:  4 embedded
  notes (qmd://notes/)
    Pattern:  **/*.md
    Files:    2 (updated 1m ago)
"""


def make_proc(stdout: str = "", stderr: str = "", returncode: int = 0) -> MagicMock:
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(stdout.encode(), stderr.encode()))
    proc.wait = AsyncMock(return_value=returncode)
    return proc


class TestSearch:
    @pytest.mark.asyncio
    async def test_search_builds_argv_and_normalizes(self) -> None:
        client = IndexClient("/bin/qmd")
        payload = json.dumps([{"docid": "#1", "path": "qmd://notes/a.md", "score": "0.8"}])
        proc = make_proc(payload)

        with patch("asyncio.create_subprocess_exec", return_value=proc) as mock_exec:
            result = await client.search('say "hi"', SearchOptions(limit=3))

        argv = mock_exec.call_args.args
        assert argv == ("/bin/qmd", "search", 'say "hi"', "--json", "-n", "3")
        assert result.mode == "search"
        assert result.query == 'say "hi"'
        assert result.items[0].path == "a.md"
        assert result.items[0].score == 0.8

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("method", "subcommand"),
        [("search", "search"), ("vector_search", "vsearch"), ("hybrid_query", "query")],
    )
    async def test_modes_use_their_subcommand(self, method: str, subcommand: str) -> None:
        client = IndexClient("qmd")
        with patch("asyncio.create_subprocess_exec", return_value=make_proc("[]")) as mock_exec:
            result = await getattr(client, method)("x")
        assert mock_exec.call_args.args[1] == subcommand
        assert result.mode == subcommand
        assert result.items == ()

    @pytest.mark.asyncio
    async def test_run_search_rejects_unknown_mode(self) -> None:
        with pytest.raises(ValueError):
            await IndexClient().run_search("fuzzy", "x")  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_stderr_with_success_still_parses(self) -> None:
        proc = make_proc('{"results": []}', stderr="model warming up")
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            result = await IndexClient().search("x")
        assert result.items == ()


class TestErrorClassification:
    @pytest.mark.asyncio
    async def test_missing_executable_is_not_found(self) -> None:
        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError("qmd")):
            with pytest.raises(ToolNotFoundError) as exc_info:
                await IndexClient("/nope/qmd").search("x")
        assert "/nope/qmd" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_other_os_error_is_unknown(self) -> None:
        with patch("asyncio.create_subprocess_exec", side_effect=PermissionError("denied")):
            with pytest.raises(UnknownToolError):
                await IndexClient().search("x")

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self) -> None:
        proc = make_proc()

        async def hang() -> tuple[bytes, bytes]:
            await asyncio.sleep(10)
            return b"", b""

        proc.communicate = AsyncMock(side_effect=hang)
        client = IndexClient(timeouts=TimeoutsConfig(search_sec=0.01))
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            with pytest.raises(ToolTimeoutError):
                await client.search("x")
        proc.kill.assert_called_once()

    @pytest.mark.asyncio
    async def test_invalid_json_is_parse_error(self) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=make_proc("{oops")):
            with pytest.raises(OutputParseError):
                await IndexClient().search("x")

    @pytest.mark.asyncio
    async def test_nonzero_exit_with_stderr_is_command_error(self) -> None:
        proc = make_proc(stderr="Collection 'x' not found\n", returncode=1)
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            with pytest.raises(ToolCommandError) as exc_info:
                await IndexClient().search("x", SearchOptions(collection="x"))
        assert str(exc_info.value) == "Collection 'x' not found"

    @pytest.mark.asyncio
    async def test_nonzero_exit_without_stderr_is_unknown(self) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=make_proc(returncode=3)):
            with pytest.raises(UnknownToolError):
                await IndexClient().update()


class TestStatus:
    @pytest.mark.asyncio
    async def test_status_parses_plain_text(self) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=make_proc(STATUS_TEXT)) as m:
            status = await IndexClient("qmd").get_status()
        assert m.call_args.args == ("qmd", "status")
        assert status.total_documents == 2
        assert status.collections[0].file_count == 2

    @pytest.mark.asyncio
    async def test_status_json_format_requests_json(self) -> None:
        client = IndexClient("qmd", TimeoutsConfig(status_format="json"))
        proc = make_proc('{"totalDocuments": 5}')
        with patch("asyncio.create_subprocess_exec", return_value=proc) as m:
            status = await client.get_status()
        assert m.call_args.args == ("qmd", "status", "--json")
        assert status.total_documents == 5

    @pytest.mark.asyncio
    async def test_list_collections(self) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=make_proc(STATUS_TEXT)):
            assert await IndexClient().list_collections() == ["notes"]

    @pytest.mark.asyncio
    async def test_list_collections_propagates_errors(self) -> None:
        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError()):
            with pytest.raises(ToolNotFoundError):
                await IndexClient().list_collections()


class TestConnection:
    @pytest.mark.asyncio
    async def test_ok(self) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=make_proc(STATUS_TEXT)):
            result = await IndexClient().test_connection()
        assert result.ok is True
        assert isinstance(result.status, IndexStatusSnapshot)

    @pytest.mark.asyncio
    async def test_failure_never_raises(self) -> None:
        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError()):
            result = await IndexClient("/missing/qmd").test_connection()
        assert result.ok is False
        assert result.message.startswith("NotFound")
        assert "/missing/qmd" in result.message


class TestMutations:
    @pytest.mark.asyncio
    async def test_add_or_update_registers_collection(self) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=make_proc()) as m:
            await IndexClient("qmd").add_or_update_collection("/vault", "vault")
        assert m.call_count == 1
        assert m.call_args.args == ("qmd", "collection", "add", "/vault", "--name", "vault")

    @pytest.mark.asyncio
    async def test_add_or_update_falls_back_to_update(self) -> None:
        rejected = make_proc(stderr="Collection 'vault' already exists", returncode=1)
        with patch(
            "asyncio.create_subprocess_exec", side_effect=[rejected, make_proc()]
        ) as m:
            await IndexClient("qmd").add_or_update_collection("/vault", "vault")
        assert m.call_args_list[1].args == ("qmd", "update")

    @pytest.mark.asyncio
    async def test_add_or_update_falls_back_when_rejection_is_on_stdout(self) -> None:
        rejected = make_proc(stdout="Collection already exists", returncode=1)
        with patch(
            "asyncio.create_subprocess_exec", side_effect=[rejected, make_proc()]
        ) as m:
            await IndexClient("qmd").add_or_update_collection("/vault", "vault")
        assert [c.args[1] for c in m.call_args_list] == ["collection", "update"]

    @pytest.mark.asyncio
    async def test_add_or_update_does_not_fall_back_when_tool_missing(self) -> None:
        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError()) as m:
            with pytest.raises(ToolNotFoundError):
                await IndexClient("qmd").add_or_update_collection("/vault", "vault")
        assert m.call_count == 1

    @pytest.mark.asyncio
    async def test_embed(self) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=make_proc()) as m:
            await IndexClient("qmd").embed()
        assert m.call_args.args == ("qmd", "embed")

    def test_set_tool_path(self) -> None:
        client = IndexClient("qmd")
        client.set_tool_path("/new/qmd")
        assert client.tool_path == "/new/qmd"


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_call_kills_and_reaps_child(self) -> None:
        proc = make_proc()
        started = asyncio.Event()

        async def hang() -> tuple[bytes, bytes]:
            started.set()
            await asyncio.sleep(10)
            return b"", b""

        proc.communicate = AsyncMock(side_effect=hang)
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            task = asyncio.create_task(IndexClient().embed())
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        proc.kill.assert_called_once()
        proc.wait.assert_awaited_once()
