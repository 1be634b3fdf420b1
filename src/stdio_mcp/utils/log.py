"""Logging setup for the command-line entry point."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

from stdio_mcp.config import LogLevel


def configure_logging(level: LogLevel = "WARNING") -> None:
    """Route log records to a rich handler on stderr.

    stdout carries the interactive console, so nothing is logged there.
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )
