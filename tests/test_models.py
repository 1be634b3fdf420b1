"""Tests for JSON-RPC and MCP payload models."""

import pytest
from pydantic import ValidationError

from stdio_mcp.models import (
    CallToolResult,
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


class TestEnvelope:
    def test_request_omits_missing_params(self) -> None:
        assert JsonRpcRequest(id=1, method="ping").to_wire() == {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "ping",
        }

    def test_notification_has_no_id(self) -> None:
        wire = JsonRpcNotification(method="notifications/initialized").to_wire()
        assert "id" not in wire

    def test_error_response_wire_shape(self) -> None:
        response = JsonRpcResponse(id=5, error=JsonRpcError(code=-32601, message="Method not found"))
        assert response.to_wire() == {
            "jsonrpc": "2.0",
            "id": 5,
            "error": {"code": -32601, "message": "Method not found"},
        }

    def test_empty_result_is_serialised(self) -> None:
        assert JsonRpcResponse(id="a", result={}).to_wire()["result"] == {}

    def test_message_classification(self) -> None:
        assert is_response({"id": 1, "result": {}})
        assert is_response({"id": 1, "error": {"code": 1, "message": "x"}})
        assert not is_response({"id": 1, "method": "ping"})
        assert is_request({"id": 1, "method": "ping"})
        assert not is_request({"method": "notifications/progress"})


class TestInitializeResult:
    def test_parses_camel_case(self) -> None:
        result = InitializeResult.model_validate({
            "protocolVersion": "2025-03-26",
            "capabilities": {"tools": {"listChanged": True}},
            "serverInfo": {"name": "srv", "version": "2.0"},
            "instructions": "Be nice.",
        })
        assert result.protocol_version == "2025-03-26"
        assert result.server_info.name == "srv"
        assert result.instructions == "Be nice."

    def test_requires_server_info(self) -> None:
        with pytest.raises(ValidationError):
            InitializeResult.model_validate({"protocolVersion": "2025-03-26"})


class TestTool:
    def test_input_schema_alias_and_extras(self) -> None:
        tool = Tool.model_validate({
            "name": "greet",
            "description": "Say hello",
            "inputSchema": {
                "type": "object",
                "properties": {"name": {"type": "string"}},
                "required": ["name"],
                "additionalProperties": False,
            },
        })
        assert tool.input_schema.properties == {"name": {"type": "string"}}
        assert tool.input_schema.required == ["name"]
        assert tool.input_schema.model_extra == {"additionalProperties": False}

    def test_defaults(self) -> None:
        tool = Tool(name="bare")
        assert tool.description == ""
        assert tool.input_schema.properties == {}
        assert tool.input_schema.required == []

    def test_is_frozen(self) -> None:
        tool = Tool(name="greet")
        with pytest.raises(ValidationError):
            tool.name = "other"  # type: ignore[misc]

    def test_list_result_cursor(self) -> None:
        page = ListToolsResult.model_validate({"tools": [{"name": "a"}], "nextCursor": "c2"})
        assert [t.name for t in page.tools] == ["a"]
        assert page.next_cursor == "c2"


class TestCallToolResult:
    def test_text_joins_text_items_only(self) -> None:
        result = CallToolResult.model_validate({
            "content": [
                {"type": "text", "text": "line one"},
                {"type": "image", "data": "aGk=", "mimeType": "image/png"},
                {"type": "text", "text": "line two"},
            ],
        })
        assert result.text() == "line one\nline two"
        assert result.is_error is False
        assert result.content[1].model_extra == {"data": "aGk=", "mimeType": "image/png"}

    def test_error_flag_and_structured_content(self) -> None:
        result = CallToolResult.model_validate({
            "content": [],
            "isError": True,
            "structuredContent": {"code": "E1"},
        })
        assert result.is_error
        assert result.structured_content == {"code": "E1"}
        assert result.text() == ""
