"""Error types for the MCP client core."""

from __future__ import annotations

from typing import Any


class MCPClientError(Exception):
    """Base error for all client failures."""


class LaunchError(MCPClientError):
    """The server subprocess could not be started."""

    def __init__(self, command: str, detail: str = "") -> None:
        self.command = command
        self.detail = detail
        super().__init__(f"Failed to launch {command!r}" + (f": {detail}" if detail else ""))


class HandshakeError(MCPClientError):
    """The initialize handshake failed or the server is incompatible."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Handshake failed" + (f": {detail}" if detail else ""))


class TransportError(MCPClientError):
    """The stdio stream closed unexpectedly or the pipe broke."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Transport error" + (f": {detail}" if detail else ""))


class SessionClosedError(TransportError):
    """A request was abandoned because the session was closed."""

    def __init__(self) -> None:
        super().__init__("session closed")


class ProtocolError(MCPClientError):
    """Malformed or unexpected response, or a JSON-RPC error reply."""

    def __init__(self, detail: str, *, code: int | None = None, data: Any = None) -> None:
        self.detail = detail
        self.code = code
        self.data = data
        prefix = f"[{code}] " if code is not None else ""
        super().__init__(f"Protocol error: {prefix}{detail}")


class MalformedMessageError(ProtocolError):
    """An inbound line was not a JSON object."""


class RequestTimeoutError(ProtocolError):
    """No response arrived within the configured request timeout."""

    def __init__(self, method: str, timeout: float) -> None:
        self.method = method
        self.timeout = timeout
        super().__init__(f"{method} timed out after {timeout}s")


class SessionStateError(ProtocolError):
    """The operation is not valid in the current session state."""


class UnknownToolError(MCPClientError):
    """The requested tool is not in the discovered catalog."""

    def __init__(self, name: str, available: list[str] | None = None) -> None:
        self.name = name
        self.available = available or []
        msg = f"Unknown tool: {name}"
        if self.available:
            msg += f" (available: {', '.join(self.available)})"
        super().__init__(msg)
