"""ProtocolSession — one MCP connection over an :class:`MCPTransport`.

A background reader task drains every inbound message and resolves the
future waiting on its correlation id, so responses may arrive in any order.
Requests suspend their caller until the matching response arrives, the
transport breaks, or :meth:`ProtocolSession.close` is called.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ValidationError

from stdio_mcp.errors import (
    HandshakeError,
    MalformedMessageError,
    MCPClientError,
    ProtocolError,
    RequestTimeoutError,
    SessionClosedError,
    SessionStateError,
    TransportError,
)
from stdio_mcp.models import (
    LATEST_PROTOCOL_VERSION,
    METHOD_NOT_FOUND,
    SUPPORTED_PROTOCOL_VERSIONS,
    CallToolResult,
    Implementation,
    InitializeResult,
    JsonRpcError,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    ListToolsResult,
    Tool,
    is_request,
    is_response,
)
from stdio_mcp.utils.telemetry import ATTR_RPC_ID, ATTR_RPC_METHOD, get_tracer

if TYPE_CHECKING:
    from stdio_mcp.transport import MCPTransport

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

_M = TypeVar("_M", bound=BaseModel)

ToolCatalog = Mapping[str, Tool]

# MCP logging levels (RFC 5424 names) mapped onto the stdlib scale.
_SERVER_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "notice": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "alert": logging.CRITICAL,
    "emergency": logging.CRITICAL,
}


class SessionState(str, Enum):
    """Lifecycle of a :class:`ProtocolSession`. ``CLOSED`` is terminal."""

    UNCONNECTED = "unconnected"
    HANDSHAKING = "handshaking"
    READY = "ready"
    CLOSED = "closed"


class ProtocolSession:
    """Request/response correlation and the MCP method primitives.

    Usage::

        session = ProtocolSession(Implementation(name="me", version="1.0"))
        await session.connect(transport)
        catalog = await session.list_tools()
        result = await session.call_tool("greet", {"name": "Alice"})
        await session.close()
    """

    def __init__(
        self,
        client_info: Implementation,
        *,
        request_timeout: float | None = None,
    ) -> None:
        self._client_info = client_info
        self._request_timeout = request_timeout
        self._state = SessionState.UNCONNECTED
        self._transport: MCPTransport | None = None
        self._reader: asyncio.Task[None] | None = None
        self._send_lock = asyncio.Lock()
        self._pending: dict[int, asyncio.Future[JsonRpcResponse]] = {}
        self._next_id = 1
        self._transport_error: TransportError | None = None
        self._init_result: InitializeResult | None = None

    # -- properties -----------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def server_info(self) -> Implementation | None:
        return self._init_result.server_info if self._init_result else None

    @property
    def server_capabilities(self) -> dict[str, Any]:
        return dict(self._init_result.capabilities) if self._init_result else {}

    @property
    def protocol_version(self) -> str | None:
        return self._init_result.protocol_version if self._init_result else None

    @property
    def instructions(self) -> str | None:
        return self._init_result.instructions if self._init_result else None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # -- lifecycle ------------------------------------------------------------

    async def connect(self, transport: MCPTransport) -> None:
        """Run the initialize handshake and move to ``READY``.

        On any failure the session is closed and :class:`HandshakeError` is
        raised; a half-initialised session is never observable.
        """
        if self._state is not SessionState.UNCONNECTED:
            msg = f"connect() is not valid in state {self._state.value!r}"
            raise SessionStateError(msg)

        self._transport = transport
        self._state = SessionState.HANDSHAKING
        self._reader = asyncio.create_task(self._read_loop(transport), name="mcp-session-reader")

        try:
            self._init_result = await self._initialize()
        except HandshakeError:
            await self.close()
            raise
        except (MCPClientError, ValidationError) as exc:
            await self.close()
            raise HandshakeError(str(exc)) from exc
        except asyncio.CancelledError:
            await self.close()
            raise

        self._state = SessionState.READY
        logger.info(
            "Handshake complete with %s %s (protocol %s)",
            self._init_result.server_info.name,
            self._init_result.server_info.version,
            self._init_result.protocol_version,
        )

    async def close(self) -> None:
        """Fail all pending requests, stop the reader and release the transport.

        Idempotent, and safe to call whether or not :meth:`connect` succeeded.
        """
        if self._state is SessionState.CLOSED:
            return
        self._state = SessionState.CLOSED

        pending = list(self._pending.values())
        self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(SessionClosedError())

        reader, self._reader = self._reader, None
        if reader is not None and not reader.done():
            reader.cancel()
            await asyncio.wait([reader])

        if self._transport is not None:
            await self._transport.close()
        logger.debug("Session closed (%d pending request(s) failed)", len(pending))

    # -- MCP methods ----------------------------------------------------------

    async def list_tools(self) -> ToolCatalog:
        """Fetch every page of ``tools/list`` and return a fresh read-only catalog."""
        self._require_ready()
        tools: dict[str, Tool] = {}
        seen_cursors: set[str] = set()
        cursor: str | None = None
        while True:
            result = await self._request("tools/list", {"cursor": cursor} if cursor else None)
            page = _parse(ListToolsResult, result, "tools/list")
            for tool in page.tools:
                if tool.name in tools:
                    logger.warning("Server listed tool %r more than once", tool.name)
                tools[tool.name] = tool
            cursor = page.next_cursor
            if not cursor:
                break
            if cursor in seen_cursors:
                msg = f"tools/list pagination repeated cursor {cursor!r}"
                raise ProtocolError(msg)
            seen_cursors.add(cursor)
        return MappingProxyType(tools)

    async def call_tool(self, name: str, arguments: Mapping[str, Any] | None = None) -> CallToolResult:
        """Invoke a tool. A tool-side failure comes back with ``is_error`` set."""
        self._require_ready()
        result = await self._request(
            "tools/call",
            {"name": name, "arguments": dict(arguments or {})},
        )
        return _parse(CallToolResult, result, "tools/call")

    async def ping(self) -> None:
        """Check that the server is still answering."""
        self._require_ready()
        await self._request("ping")

    # -- internals ------------------------------------------------------------

    async def _initialize(self) -> InitializeResult:
        result = await self._request(
            "initialize",
            {
                "protocolVersion": LATEST_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": self._client_info.model_dump(),
            },
        )
        init = InitializeResult.model_validate(result)
        if init.protocol_version not in SUPPORTED_PROTOCOL_VERSIONS:
            msg = (
                f"server chose unsupported protocol version {init.protocol_version!r} "
                f"(supported: {', '.join(SUPPORTED_PROTOCOL_VERSIONS)})"
            )
            raise HandshakeError(msg)
        await self._send(JsonRpcNotification(method="notifications/initialized").to_wire())
        return init

    def _require_ready(self) -> None:
        if self._state is SessionState.CLOSED:
            raise SessionClosedError()
        if self._state is not SessionState.READY:
            msg = f"session is {self._state.value}, not ready"
            raise SessionStateError(msg)

    def _check_transport(self) -> MCPTransport:
        if self._state is SessionState.CLOSED:
            raise SessionClosedError()
        if self._transport_error is not None:
            raise TransportError(self._transport_error.detail) from self._transport_error
        if self._transport is None:
            msg = "session has no transport"
            raise SessionStateError(msg)
        return self._transport

    async def _send(self, message: dict[str, Any]) -> None:
        transport = self._check_transport()
        async with self._send_lock:
            await transport.send(message)

    async def _request(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send a request and wait for the response with the same id."""
        self._check_transport()

        request_id = self._next_id
        self._next_id += 1
        future: asyncio.Future[JsonRpcResponse] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        with _tracer.start_as_current_span("mcp.request") as span:
            span.set_attribute(ATTR_RPC_METHOD, method)
            span.set_attribute(ATTR_RPC_ID, request_id)
            try:
                await self._send(JsonRpcRequest(id=request_id, method=method, params=params).to_wire())
                response = await self._wait(method, future)
            finally:
                self._pending.pop(request_id, None)

        if response.error is not None:
            raise ProtocolError(
                response.error.message,
                code=response.error.code,
                data=response.error.data,
            )
        return response.result or {}

    async def _wait(self, method: str, future: asyncio.Future[JsonRpcResponse]) -> JsonRpcResponse:
        if self._request_timeout is None:
            return await future
        try:
            return await asyncio.wait_for(future, timeout=self._request_timeout)
        except TimeoutError:
            raise RequestTimeoutError(method, self._request_timeout) from None

    async def _read_loop(self, transport: MCPTransport) -> None:
        while True:
            try:
                message = await transport.receive()
            except MalformedMessageError as exc:
                logger.warning("Dropping malformed message from server: %s", exc.detail)
                continue
            except TransportError as exc:
                self._fail_transport(exc)
                return
            except Exception as exc:
                logger.exception("Session reader stopped unexpectedly")
                self._fail_transport(TransportError(repr(exc)))
                return

            if is_response(message):
                self._handle_response(message)
            elif is_request(message):
                await self._handle_server_request(message)
            elif "method" in message:
                self._handle_notification(message)
            else:
                logger.warning("Ignoring unrecognised message: %s", message)

    def _fail_transport(self, exc: TransportError) -> None:
        self._transport_error = exc
        if self._state is not SessionState.CLOSED:
            logger.warning("Server connection lost: %s", exc.detail)
        for future in self._pending.values():
            if not future.done():
                future.set_exception(exc)

    def _handle_response(self, message: dict[str, Any]) -> None:
        raw_id = message.get("id")
        # bool is an int subclass; a JSON true must not match request 1
        future = self._pending.get(raw_id) if type(raw_id) is int else None

        try:
            response = JsonRpcResponse.model_validate(message)
        except ValidationError as exc:
            if future is not None and not future.done():
                future.set_exception(ProtocolError(f"invalid response: {exc}"))
            else:
                logger.warning("Dropping invalid response: %s", message)
            return

        if future is None or future.done():
            logger.warning("Dropping response for unknown request id %r", response.id)
            return
        future.set_result(response)

    async def _handle_server_request(self, message: dict[str, Any]) -> None:
        method = message["method"]
        request_id = message["id"]
        if not isinstance(request_id, (int, str)):
            logger.warning("Ignoring server request %r with invalid id %r", method, request_id)
            return

        if method == "ping":
            reply = JsonRpcResponse(id=request_id, result={})
        else:
            logger.debug("Rejecting unsupported server request %r", method)
            reply = JsonRpcResponse(
                id=request_id,
                error=JsonRpcError(code=METHOD_NOT_FOUND, message=f"Method not found: {method}"),
            )

        try:
            await self._send(reply.to_wire())
        except TransportError as exc:
            logger.warning("Could not answer server request %r: %s", method, exc.detail)

    def _handle_notification(self, message: dict[str, Any]) -> None:
        method = message["method"]
        params = message.get("params") or {}
        if method == "notifications/message" and isinstance(params, dict):
            level = _SERVER_LOG_LEVELS.get(str(params.get("level")), logging.INFO)
            logger.log(level, "[server] %s", params.get("data"))
        else:
            logger.debug("Notification %s: %s", method, params)


def _parse(model: type[_M], result: dict[str, Any], method: str) -> _M:
    try:
        return model.model_validate(result)
    except ValidationError as exc:
        msg = f"invalid {method} result ({exc.error_count()} validation error(s))"
        raise ProtocolError(msg) from exc
