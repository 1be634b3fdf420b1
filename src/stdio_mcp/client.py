"""StdioMCPClient — launches an MCP server and manages the whole session.

Sequences launch → transport → handshake → tool discovery, owns the tool
catalog, and tears everything down in order: session first, then the
process, escalating from terminate to kill with bounded waits.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from stdio_mcp.config import ClientSettings
from stdio_mcp.errors import SessionStateError, UnknownToolError
from stdio_mcp.models import Implementation
from stdio_mcp.process import launch_process
from stdio_mcp.session import ProtocolSession, SessionState, ToolCatalog
from stdio_mcp.transport import StdioTransport
from stdio_mcp.utils.telemetry import (
    ATTR_SERVER_COMMAND,
    ATTR_SERVER_NAME,
    ATTR_SERVER_PID,
    ATTR_TOOL_COUNT,
    ATTR_TOOL_IS_ERROR,
    ATTR_TOOL_NAME,
    get_tracer,
)

if TYPE_CHECKING:
    from stdio_mcp.config import ServerConfig
    from stdio_mcp.models import CallToolResult
    from stdio_mcp.process import ProcessHandle

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

_EMPTY_CATALOG: ToolCatalog = MappingProxyType({})


class StdioMCPClient:
    """Async context manager owning one server process and its session.

    Usage::

        config = ServerConfig(command="uv", args=("run", "my-server"))
        async with StdioMCPClient() as client:
            await client.connect_to_server(config)
            result = await client.call_tool("greet", {"name": "Alice"})

    ``close()`` runs on every exit from the ``async with`` block, so the
    server process is reaped even when the caller's own code raises.
    """

    def __init__(self, settings: ClientSettings | None = None) -> None:
        self._settings = settings or ClientSettings()
        self._process: ProcessHandle | None = None
        self._session: ProtocolSession | None = None
        self._catalog: ToolCatalog = _EMPTY_CATALOG
        self._used = False
        self._stopping = False

    async def __aenter__(self) -> StdioMCPClient:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    # -- accessors ------------------------------------------------------------

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def process(self) -> ProcessHandle | None:
        return self._process

    @property
    def session(self) -> ProtocolSession | None:
        return self._session

    @property
    def connected(self) -> bool:
        return self._session is not None and self._session.state is SessionState.READY

    @property
    def server_info(self) -> Implementation | None:
        return self._session.server_info if self._session else None

    @property
    def tools(self) -> ToolCatalog:
        """The catalog from the latest discovery (read-only snapshot)."""
        self._require_session()
        return self._catalog

    # -- lifecycle ------------------------------------------------------------

    async def connect_to_server(self, config: ServerConfig) -> None:
        """Launch the server, handshake and discover its tools.

        A launch failure propagates as-is. Any later failure kills the
        already-started process and waits for it to exit before re-raising.
        """
        if self._used:
            msg = "StdioMCPClient serves a single session; create a new client"
            raise SessionStateError(msg)
        self._used = True

        with _tracer.start_as_current_span("mcp.connect") as span:
            span.set_attribute(ATTR_SERVER_COMMAND, " ".join(config.argv))
            self._process = await launch_process(config, limit=self._settings.max_line_bytes)
            span.set_attribute(ATTR_SERVER_PID, self._process.pid)

            try:
                self._session = ProtocolSession(
                    Implementation(
                        name=self._settings.client_name,
                        version=self._settings.client_version,
                    ),
                    request_timeout=self._settings.request_timeout,
                )
                await self._session.connect(StdioTransport.from_process(self._process))
                self._catalog = await self._session.list_tools()
            except BaseException as exc:
                logger.error("Failed to connect to MCP server: %s", exc)
                await self._abort()
                raise

            if self._session.server_info is not None:
                span.set_attribute(ATTR_SERVER_NAME, self._session.server_info.name)
            span.set_attribute(ATTR_TOOL_COUNT, len(self._catalog))
        logger.info("Discovered tools: %s", ", ".join(self._catalog) or "(none)")

    async def refresh_tools(self) -> ToolCatalog:
        """Re-run discovery and replace the catalog wholesale."""
        session = self._require_session()
        self._catalog = await session.list_tools()
        return self._catalog

    async def call_tool(self, name: str, arguments: Mapping[str, Any] | None = None) -> CallToolResult:
        """Call a discovered tool; unknown names fail without contacting the server."""
        session = self._require_session()
        if name not in self._catalog:
            raise UnknownToolError(name, sorted(self._catalog))

        with _tracer.start_as_current_span("mcp.call_tool") as span:
            span.set_attribute(ATTR_TOOL_NAME, name)
            result = await session.call_tool(name, arguments or {})
            span.set_attribute(ATTR_TOOL_IS_ERROR, result.is_error)
        return result

    async def ping(self) -> None:
        await self._require_session().ping()

    async def close(self) -> None:
        """Close the session, then stop the process (terminate, then kill).

        Idempotent; safe whether or not :meth:`connect_to_server` completed.
        The process handle is kept until the process has exited, so a close
        interrupted mid-teardown can be retried and goes straight to kill.
        """
        self._used = True
        session, self._session = self._session, None
        process = self._process
        self._catalog = _EMPTY_CATALOG
        if session is None and process is None:
            return

        with _tracer.start_as_current_span("mcp.close"):
            try:
                if session is not None:
                    await session.close()
                    logger.info("MCP session closed")
            finally:
                if process is not None:
                    await self._stop_process(process)

    # -- internals ------------------------------------------------------------

    def _require_session(self) -> ProtocolSession:
        if self._session is None:
            msg = "not connected to a server"
            raise SessionStateError(msg)
        return self._session

    async def _stop_process(self, process: ProcessHandle) -> None:
        """Stop *process*; the handle is released only once it has exited.

        A retry after an interrupted stop skips the graceful phase.
        """
        graceful = not self._stopping
        self._stopping = True
        if process.is_alive() and graceful:
            process.terminate()
            code = await process.wait_for_exit(self._settings.termination_timeout)
            if code is None:
                logger.warning(
                    "Server process %s did not exit within %.1fs; killing it",
                    process.pid,
                    self._settings.termination_timeout,
                )
                process.kill()
                code = await process.wait_for_exit(self._settings.kill_timeout)
        elif process.is_alive():
            logger.warning("Killing server process %s", process.pid)
            process.kill()
            code = await process.wait_for_exit(self._settings.kill_timeout)
        else:
            code = await process.wait_for_exit(self._settings.kill_timeout)

        if code is None:
            logger.error("Server process %s is still running after kill", process.pid)
            return
        logger.info("Server process %s exited with code %s", process.pid, code)
        if self._process is process:
            self._process = None

    async def _abort(self) -> None:
        """Tear down after a failed connect: no graceful phase, kill outright."""
        session, self._session = self._session, None
        self._catalog = _EMPTY_CATALOG
        try:
            if session is not None:
                await session.close()
        finally:
            process = self._process
            if process is not None:
                self._stopping = True
                await self._stop_process(process)
