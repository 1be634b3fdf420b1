"""MCP models — JSON-RPC 2.0 envelopes and the MCP payloads this client uses.

Covers the initialize handshake, tool discovery (``tools/list``) and tool
execution (``tools/call``).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

LATEST_PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_PROTOCOL_VERSIONS = ("2025-06-18", "2025-03-26", "2024-11-05")

METHOD_NOT_FOUND = -32601

# ---------------------------------------------------------------------------
# JSON-RPC 2.0 envelope
# ---------------------------------------------------------------------------


class JsonRpcRequest(BaseModel):
    """A JSON-RPC 2.0 request message."""

    jsonrpc: str = "2.0"
    id: int | str
    method: str
    params: dict[str, Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class JsonRpcNotification(BaseModel):
    """A JSON-RPC 2.0 notification (a request without an id)."""

    jsonrpc: str = "2.0"
    method: str
    params: dict[str, Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class JsonRpcError(BaseModel):
    """A JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any = None


class JsonRpcResponse(BaseModel):
    """A JSON-RPC 2.0 response message (result or error)."""

    jsonrpc: str = "2.0"
    id: int | str | None = None
    result: dict[str, Any] | None = None
    error: JsonRpcError | None = None

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            data["error"] = self.error.model_dump(exclude_none=True)
        else:
            data["result"] = self.result or {}
        return data


def is_response(message: Mapping[str, Any]) -> bool:
    return "method" not in message and ("result" in message or "error" in message)


def is_request(message: Mapping[str, Any]) -> bool:
    return "method" in message and "id" in message


# ---------------------------------------------------------------------------
# Handshake
# ---------------------------------------------------------------------------


class Implementation(BaseModel):
    """Name and version of an MCP client or server."""

    name: str
    version: str


class InitializeResult(BaseModel):
    """Server reply to ``initialize``."""

    model_config = {"populate_by_name": True}

    protocol_version: str = Field(alias="protocolVersion")
    capabilities: dict[str, Any] = Field(default_factory=dict)
    server_info: Implementation = Field(alias="serverInfo")
    instructions: str | None = None


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class ToolInputSchema(BaseModel):
    """JSON-Schema-like description of a tool's arguments.

    Only ``properties`` and ``required`` are interpreted; other keys are kept.
    """

    model_config = {"frozen": True, "extra": "allow"}

    type: str = "object"
    properties: dict[str, Any] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)


class Tool(BaseModel):
    """A tool definition as returned by ``tools/list``."""

    model_config = {"frozen": True, "populate_by_name": True}

    name: str
    title: str | None = None
    description: str = ""
    input_schema: ToolInputSchema = Field(default_factory=ToolInputSchema, alias="inputSchema")


class ListToolsResult(BaseModel):
    """One page of ``tools/list`` output."""

    model_config = {"populate_by_name": True}

    tools: list[Tool] = Field(default_factory=list)
    next_cursor: str | None = Field(default=None, alias="nextCursor")


class ContentItem(BaseModel):
    """One content block of a tool result (``text``, ``image``, ``resource``...)."""

    model_config = {"extra": "allow"}

    type: str
    text: str | None = None


class CallToolResult(BaseModel):
    """Server reply to ``tools/call``.

    ``is_error`` reports a failure inside the tool itself; the call as a
    protocol exchange still succeeded.
    """

    model_config = {"populate_by_name": True}

    content: list[ContentItem] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")
    structured_content: dict[str, Any] | None = Field(default=None, alias="structuredContent")

    def text_items(self) -> list[str]:
        return [item.text for item in self.content if item.type == "text" and item.text is not None]

    def text(self) -> str:
        return "\n".join(self.text_items())
