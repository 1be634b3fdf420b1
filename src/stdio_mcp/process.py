"""Process launcher — spawns an MCP server and wraps its OS process handle."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import TYPE_CHECKING

from stdio_mcp.errors import LaunchError

if TYPE_CHECKING:
    from stdio_mcp.config import ServerConfig

logger = logging.getLogger(__name__)

DEFAULT_LINE_LIMIT = 16 * 1024 * 1024


class ProcessHandle:
    """Lifecycle control over a launched server process.

    Signalling a process that has already exited is a no-op.
    """

    def __init__(self, process: asyncio.subprocess.Process, argv: list[str]) -> None:
        self._process = process
        self._argv = argv

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def argv(self) -> list[str]:
        return list(self._argv)

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def stdin(self) -> asyncio.StreamWriter:
        if self._process.stdin is None:
            msg = "Process was started without a stdin pipe"
            raise RuntimeError(msg)
        return self._process.stdin

    @property
    def stdout(self) -> asyncio.StreamReader:
        if self._process.stdout is None:
            msg = "Process was started without a stdout pipe"
            raise RuntimeError(msg)
        return self._process.stdout

    def is_alive(self) -> bool:
        return self._process.returncode is None

    def terminate(self) -> None:
        """Ask the process to exit (SIGTERM on POSIX)."""
        try:
            self._process.terminate()
        except ProcessLookupError:
            logger.debug("terminate: pid %s already gone", self.pid)

    def kill(self) -> None:
        """Force the process to exit (SIGKILL on POSIX)."""
        try:
            self._process.kill()
        except ProcessLookupError:
            logger.debug("kill: pid %s already gone", self.pid)

    async def wait_for_exit(self, timeout: float | None = None) -> int | None:
        """Wait for exit and return the exit code, or ``None`` if *timeout* elapsed."""
        if timeout is None:
            return await self._process.wait()
        try:
            return await asyncio.wait_for(self._process.wait(), timeout=timeout)
        except TimeoutError:
            return None

    def __repr__(self) -> str:
        state = "running" if self.is_alive() else f"exited({self.returncode})"
        return f"ProcessHandle(pid={self.pid}, argv={self._argv!r}, {state})"


async def launch_process(
    config: ServerConfig,
    *,
    stderr: int | None = None,
    limit: int = DEFAULT_LINE_LIMIT,
) -> ProcessHandle:
    """Start ``config.command`` with piped stdin/stdout.

    stderr is inherited unless *stderr* is given, so server diagnostics never
    reach the protocol stream.  *limit* caps the length of one inbound line.

    Raises
    ------
    LaunchError
        If the executable cannot be found or spawned.
    """
    argv = config.argv
    env = {**os.environ, **config.env}
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=stderr,
            env=env,
            limit=limit,
        )
    except OSError as exc:
        raise LaunchError(config.command, str(exc)) from exc

    logger.info("Started server process %s (pid %s)", " ".join(argv), process.pid)
    return ProcessHandle(process, argv)
