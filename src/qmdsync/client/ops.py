"""Index client - runs qmd as a subprocess and normalizes its output."""

from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass

import structlog

from qmdsync.client import commands
from qmdsync.client.models import (
    ConnectionResult,
    Document,
    IndexStatusSnapshot,
    SearchMode,
    SearchOptions,
    SearchResult,
)
from qmdsync.client.parsers import (
    parse_document_output,
    parse_search_output,
    parse_status_output,
)
from qmdsync.config.models import TimeoutsConfig
from qmdsync.core.errors import (
    IndexClientError,
    ToolCommandError,
    ToolNotFoundError,
    ToolTimeoutError,
    UnknownToolError,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class CommandOutput:
    stdout: str
    stderr: str
    returncode: int


class IndexClient:
    """Async wrapper around the qmd executable.

    Read operations (search, get, status) may run concurrently with each other
    and with a sync. Every call is bounded by an operation-specific timeout
    after which the process is killed and ``ToolTimeoutError`` is raised.
    """

    def __init__(self, tool_path: str = "qmd", timeouts: TimeoutsConfig | None = None) -> None:
        self._tool_path = tool_path
        self._timeouts = timeouts or TimeoutsConfig()

    @property
    def tool_path(self) -> str:
        return self._tool_path

    def set_tool_path(self, tool_path: str) -> None:
        self._tool_path = tool_path

    def set_timeouts(self, timeouts: TimeoutsConfig) -> None:
        self._timeouts = timeouts

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    async def search(self, query: str, options: SearchOptions | None = None) -> SearchResult:
        """BM25 keyword search."""
        return await self._search("search", query, options or SearchOptions())

    async def vector_search(
        self, query: str, options: SearchOptions | None = None
    ) -> SearchResult:
        """Vector semantic search."""
        return await self._search("vsearch", query, options or SearchOptions())

    async def hybrid_query(self, query: str, options: SearchOptions | None = None) -> SearchResult:
        """Hybrid search with reranking."""
        return await self._search("query", query, options or SearchOptions())

    async def run_search(
        self, mode: SearchMode, query: str, options: SearchOptions | None = None
    ) -> SearchResult:
        """Dispatch by ranking mode name."""
        if mode not in ("search", "vsearch", "query"):
            raise ValueError(f"Unknown search mode: {mode}")
        return await self._search(mode, query, options or SearchOptions())

    async def _search(self, mode: SearchMode, query: str, options: SearchOptions) -> SearchResult:
        start = time.monotonic()
        out = await self._run(commands.search_args(mode, query, options), self._timeouts.search_sec)
        elapsed_ms = (time.monotonic() - start) * 1000
        result = parse_search_output(out.stdout, query=query, mode=mode, elapsed_ms=elapsed_ms)
        logger.debug("search_completed", mode=mode, results=len(result), elapsed_ms=elapsed_ms)
        return result

    async def get_document(self, path_or_id: str) -> Document:
        out = await self._run(commands.get_args(path_or_id), self._timeouts.search_sec)
        return parse_document_output(out.stdout)

    async def get_status(self) -> IndexStatusSnapshot:
        """Fetch and parse ``qmd status``.

        The plain-text form is requested unless status_format is "json".
        """
        status_format = self._timeouts.status_format
        out = await self._run(
            commands.status_args(as_json=status_format == "json"), self._timeouts.probe_sec
        )
        return parse_status_output(out.stdout, status_format)

    async def list_collections(self) -> list[str]:
        status = await self.get_status()
        return status.collection_names

    async def test_connection(self) -> ConnectionResult:
        """Probe the tool. Never raises."""
        try:
            status = await self.get_status()
        except IndexClientError as e:
            return ConnectionResult(ok=False, message=f"{e.kind}: {e.message}")
        except Exception as e:
            return ConnectionResult(ok=False, message=f"Unknown: {e}")
        return ConnectionResult(
            ok=True,
            message=f"{status.total_documents} documents in {len(status.collections)} collection(s)",
            status=status,
        )

    # -------------------------------------------------------------------------
    # Mutating operations (serialized by the sync coordinator)
    # -------------------------------------------------------------------------

    async def add_collection(self, directory: str, name: str) -> None:
        await self._run(commands.collection_add_args(directory, name), self._timeouts.update_sec)

    async def update(self, timeout_sec: float | None = None) -> None:
        await self._run(commands.update_args(), timeout_sec or self._timeouts.update_sec)

    async def add_or_update_collection(self, directory: str, name: str) -> None:
        """Register the directory as a collection, or update it if already registered.

        Any rejection of ``collection add`` falls back to ``update``; qmd
        reports an existing collection on stdout or stderr depending on
        version. A missing executable or a timeout is not a rejection.
        """
        try:
            await self.add_collection(directory, name)
        except (ToolNotFoundError, ToolTimeoutError):
            raise
        except IndexClientError as e:
            logger.debug("collection_add_rejected", name=name, kind=e.kind, reason=e.message)
            await self.update()

    async def embed(self) -> None:
        await self._run(commands.embed_args(), self._timeouts.embed_sec)

    # -------------------------------------------------------------------------
    # Process execution
    # -------------------------------------------------------------------------

    async def _run(self, args: list[str], timeout_sec: float) -> CommandOutput:
        argv = [self._tool_path, *args]
        command = commands.render_command(argv)
        logger.debug("tool_invoked", command=command, timeout_sec=timeout_sec)

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ToolNotFoundError.at(self._tool_path) from e
        except OSError as e:
            raise UnknownToolError.unexpected(str(e), command=command) from e

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(), timeout=timeout_sec
            )
        except TimeoutError as e:
            await self._reap(proc)
            raise ToolTimeoutError.after(command, timeout_sec) from e
        except BaseException:
            # Cancellation, including event loop shutdown, never leaves a live child
            await self._reap(proc)
            raise

        stdout = stdout_bytes.decode(errors="replace")
        stderr = stderr_bytes.decode(errors="replace")

        if proc.returncode != 0:
            if stderr.strip():
                raise ToolCommandError.from_stderr(stderr, proc.returncode)
            raise UnknownToolError.unexpected(
                f"qmd exited with code {proc.returncode}",
                command=command,
                returncode=proc.returncode,
            )

        if stderr.strip():
            logger.warning("tool_stderr", command=command, stderr=stderr.strip())

        return CommandOutput(stdout=stdout, stderr=stderr, returncode=proc.returncode)

    @staticmethod
    async def _reap(proc: asyncio.subprocess.Process) -> None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        with contextlib.suppress(Exception):
            await proc.wait()
