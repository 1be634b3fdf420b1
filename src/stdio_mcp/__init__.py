"""stdio-mcp — generic Model Context Protocol client for stdio servers."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from stdio_mcp.client import StdioMCPClient as StdioMCPClient
    from stdio_mcp.config import ClientSettings as ClientSettings
    from stdio_mcp.config import ServerConfig as ServerConfig

_EXPORTS = {
    "StdioMCPClient": "stdio_mcp.client",
    "ClientSettings": "stdio_mcp.config",
    "ServerConfig": "stdio_mcp.config",
}


def __getattr__(name: str) -> object:
    module_path = _EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'stdio_mcp' has no attribute {name!r}")
