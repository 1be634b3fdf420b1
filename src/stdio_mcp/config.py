"""Configuration — server launch descriptor and client settings."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stdio_mcp import __version__

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ServerConfig(BaseModel):
    """How to launch an MCP server as a subprocess.

    ``env`` is overlaid onto the inherited environment, it does not replace it.

    Example::

        ServerConfig(command="uv", args=("run", "my-server"), env={"API_KEY": "..."})
    """

    model_config = {"frozen": True}

    command: str
    args: tuple[str, ...] = ()
    env: dict[str, str] = Field(default_factory=dict)

    @field_validator("command")
    @classmethod
    def _command_not_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "command must not be empty"
            raise ValueError(msg)
        return value

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]


class ClientSettings(BaseSettings):
    """Client tunables, read from ``STDIO_MCP_*`` environment variables.

    ``request_timeout`` is unbounded by default; :meth:`StdioMCPClient.close`
    is what unblocks a call that never gets an answer.
    """

    model_config = SettingsConfigDict(env_prefix="STDIO_MCP_")

    client_name: str = "stdio-mcp-client"
    client_version: str = __version__
    termination_timeout: float = Field(default=2.0, gt=0)
    kill_timeout: float = Field(default=2.0, gt=0)
    request_timeout: float | None = Field(default=None, gt=0)
    max_line_bytes: int = Field(default=16 * 1024 * 1024, gt=0)
    log_level: LogLevel = "WARNING"
    trace_console: bool = False
    otlp_endpoint: str | None = None
