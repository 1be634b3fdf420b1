"""MCP stdio transport — newline-delimited JSON over a child's pipes.

The transport only moves whole messages; it never reads past the line the
session asked for.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from stdio_mcp.errors import MalformedMessageError, TransportError

if TYPE_CHECKING:
    from stdio_mcp.process import ProcessHandle

logger = logging.getLogger(__name__)


@runtime_checkable
class MCPTransport(Protocol):
    """Message channel the protocol session runs over."""

    async def send(self, message: dict[str, Any]) -> None: ...
    async def receive(self) -> dict[str, Any]: ...
    async def close(self) -> None: ...


class StdioTransport:
    """Reads the server's stdout and writes the server's stdin.

    ``receive`` raises :class:`TransportError` on end-of-stream and
    :class:`MalformedMessageError` for a line that is not a JSON object.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer
        self._closed = False

    @classmethod
    def from_process(cls, process: ProcessHandle) -> StdioTransport:
        return cls(reader=process.stdout, writer=process.stdin)

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, message: dict[str, Any]) -> None:
        """Write one JSON line to the server's stdin."""
        if self._closed:
            msg = "send on closed transport"
            raise TransportError(msg)
        line = json.dumps(message, separators=(",", ":"), ensure_ascii=False) + "\n"
        logger.debug("--> %s", line.rstrip())
        try:
            self._writer.write(line.encode("utf-8"))
            await self._writer.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise TransportError(f"stdin pipe broken: {exc}") from exc

    async def receive(self) -> dict[str, Any]:
        """Read one JSON line from the server's stdout, skipping blank lines."""
        text = ""
        while not text:
            try:
                line = await self._reader.readline()
            except ValueError as exc:
                # StreamReader raises ValueError when a line exceeds its limit.
                raise TransportError(f"inbound message too large: {exc}") from exc
            except ConnectionResetError as exc:
                raise TransportError(f"stdout pipe broken: {exc}") from exc
            if not line:
                msg = "server closed stdout"
                raise TransportError(msg)
            text = line.decode("utf-8", errors="replace").strip()

        logger.debug("<-- %s", text)
        try:
            message = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedMessageError(f"not JSON: {text[:200]!r}") from exc
        if not isinstance(message, dict):
            raise MalformedMessageError(f"not a JSON object: {text[:200]!r}")
        return message  # pyright: ignore[reportUnknownVariableType]

    async def close(self) -> None:
        """Close the server's stdin; the server sees EOF."""
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("stdin already broken at close")
