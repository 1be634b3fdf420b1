"""Shared fixtures: an in-memory scripted transport and the stub server command."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from stdio_mcp.config import ServerConfig
from stdio_mcp.errors import TransportError

STUB_SERVER = Path(__file__).parent / "fixtures" / "stub_server.py"

Responder = Callable[[dict[str, Any]], list[dict[str, Any]] | None]


def initialize_result(version: str = "2025-06-18") -> dict[str, Any]:
    return {
        "protocolVersion": version,
        "capabilities": {"tools": {}},
        "serverInfo": {"name": "scripted", "version": "0.0.1"},
    }


def handshake_responder(message: dict[str, Any]) -> list[dict[str, Any]] | None:
    """Answer ``initialize`` with a valid result; leave everything else to the test."""
    if message.get("method") == "initialize":
        return [{"jsonrpc": "2.0", "id": message["id"], "result": initialize_result()}]
    return None


class ScriptedTransport:
    """In-memory :class:`MCPTransport`.

    Outbound messages are recorded in ``sent``; an optional *responder* may
    queue replies for each one. Tests can also ``push`` inbound messages
    directly, or ``push_eof`` to simulate the server going away.
    """

    def __init__(self, responder: Responder | None = handshake_responder) -> None:
        self.sent: list[dict[str, Any]] = []
        self.responder = responder
        self.closed = False
        self._inbound: asyncio.Queue[dict[str, Any] | Exception] = asyncio.Queue()

    async def send(self, message: dict[str, Any]) -> None:
        if self.closed:
            msg = "send on closed transport"
            raise TransportError(msg)
        self.sent.append(message)
        if self.responder is not None:
            for reply in self.responder(message) or []:
                self.push(reply)

    async def receive(self) -> dict[str, Any]:
        item = await self._inbound.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True

    def push(self, message: dict[str, Any] | Exception) -> None:
        self._inbound.put_nowait(message)

    def push_eof(self) -> None:
        self.push(TransportError("server closed stdout"))

    def sent_requests(self, method: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m.get("method") == method and "id" in m]

    async def wait_sent(self, method: str, count: int = 1) -> list[dict[str, Any]]:
        for _ in range(200):
            found = self.sent_requests(method)
            if len(found) >= count:
                return found
            await asyncio.sleep(0)
        msg = f"expected {count} {method} request(s), saw {len(self.sent_requests(method))}"
        raise AssertionError(msg)


@pytest.fixture
def scripted_transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def transport_factory() -> Callable[..., ScriptedTransport]:
    return ScriptedTransport


@pytest.fixture
def init_result() -> Callable[..., dict[str, Any]]:
    return initialize_result


@pytest.fixture
def stub_config() -> Callable[..., ServerConfig]:
    """Build a :class:`ServerConfig` that runs the stub server with *flags*."""

    def _make(*flags: str, env: dict[str, str] | None = None) -> ServerConfig:
        return ServerConfig(
            command=sys.executable,
            args=(str(STUB_SERVER), *flags),
            env=env or {},
        )

    return _make
