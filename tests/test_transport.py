"""Tests for the stdio transport with in-memory streams and mocked writers."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from stdio_mcp.errors import MalformedMessageError, TransportError
from stdio_mcp.transport import MCPTransport, StdioTransport


def _reader(data: bytes, *, eof: bool = True, limit: int = 2**16) -> asyncio.StreamReader:
    reader = asyncio.StreamReader(limit=limit)
    reader.feed_data(data)
    if eof:
        reader.feed_eof()
    return reader


def _writer() -> MagicMock:
    writer = MagicMock()
    writer.write = MagicMock()
    writer.drain = AsyncMock()
    writer.close = MagicMock()
    writer.wait_closed = AsyncMock()
    return writer


class TestMCPTransportProtocol:
    async def test_stdio_satisfies_protocol(self) -> None:
        transport = StdioTransport(_reader(b""), _writer())
        assert isinstance(transport, MCPTransport)

    def test_from_process_wires_pipes(self) -> None:
        process = MagicMock()
        transport = StdioTransport.from_process(process)
        assert transport._reader is process.stdout
        assert transport._writer is process.stdin


class TestSend:
    async def test_send_writes_json_line(self) -> None:
        writer = _writer()
        transport = StdioTransport(_reader(b""), writer)

        data = {"jsonrpc": "2.0", "id": 1, "method": "tools/list"}
        await transport.send(data)

        written = writer.write.call_args[0][0]
        assert written.endswith(b"\n")
        assert written.count(b"\n") == 1
        assert json.loads(written.decode()) == data
        writer.drain.assert_awaited_once()

    async def test_send_keeps_unicode_on_one_line(self) -> None:
        writer = _writer()
        transport = StdioTransport(_reader(b""), writer)

        await transport.send({"text": "héllo\nwörld"})

        written = writer.write.call_args[0][0]
        assert written.count(b"\n") == 1
        assert json.loads(written) == {"text": "héllo\nwörld"}

    async def test_broken_pipe_becomes_transport_error(self) -> None:
        writer = _writer()
        writer.drain = AsyncMock(side_effect=BrokenPipeError("gone"))
        transport = StdioTransport(_reader(b""), writer)

        with pytest.raises(TransportError, match="broken"):
            await transport.send({"method": "ping"})

    async def test_send_after_close_raises(self) -> None:
        transport = StdioTransport(_reader(b""), _writer())
        await transport.close()
        with pytest.raises(TransportError, match="closed"):
            await transport.send({"method": "ping"})


class TestReceive:
    async def test_receive_reads_json_line(self) -> None:
        expected = {"jsonrpc": "2.0", "id": 1, "result": {"ok": True}}
        transport = StdioTransport(_reader((json.dumps(expected) + "\n").encode()), _writer())

        assert await transport.receive() == expected

    async def test_receive_reads_one_line_at_a_time(self) -> None:
        reader = _reader(b'{"id": 1}\n{"id": 2}\n')
        transport = StdioTransport(reader, _writer())

        assert await transport.receive() == {"id": 1}
        # The second message is still buffered in the reader, not consumed
        assert await reader.readline() == b'{"id": 2}\n'

    async def test_blank_lines_are_skipped(self) -> None:
        transport = StdioTransport(_reader(b'\n\r\n{"id": 3}\n'), _writer())
        assert await transport.receive() == {"id": 3}

    async def test_receive_eof_raises(self) -> None:
        transport = StdioTransport(_reader(b""), _writer())
        with pytest.raises(TransportError, match="closed"):
            await transport.receive()

    async def test_non_json_line_is_malformed(self) -> None:
        transport = StdioTransport(_reader(b'server starting up\n{"id": 4}\n'), _writer())

        with pytest.raises(MalformedMessageError, match="server starting up"):
            await transport.receive()
        # The stream stays usable after a malformed line
        assert await transport.receive() == {"id": 4}

    async def test_non_object_is_malformed(self) -> None:
        transport = StdioTransport(_reader(b"[1, 2, 3]\n"), _writer())
        with pytest.raises(MalformedMessageError, match="object"):
            await transport.receive()

    async def test_oversized_line_raises(self) -> None:
        transport = StdioTransport(_reader(b"x" * 200 + b"\n", limit=64), _writer())
        with pytest.raises(TransportError, match="too large"):
            await transport.receive()


class TestClose:
    async def test_close_closes_stdin_once(self) -> None:
        writer = _writer()
        transport = StdioTransport(_reader(b""), writer)

        await transport.close()
        await transport.close()

        writer.close.assert_called_once()
        assert transport.closed

    async def test_close_tolerates_broken_pipe(self) -> None:
        writer = _writer()
        writer.wait_closed = AsyncMock(side_effect=BrokenPipeError())
        transport = StdioTransport(_reader(b""), writer)

        await transport.close()
        assert transport.closed
