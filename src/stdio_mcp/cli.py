"""stdio-mcp CLI entrypoint."""

from __future__ import annotations

import asyncio

import click
from pydantic import ValidationError

from stdio_mcp._output import console

USAGE = """\
Usage: stdio-mcp <command> [command_args...]

Examples:
  Python server:  stdio-mcp uv run python -m my_mcp_server
  Node server:    stdio-mcp npx -y @modelcontextprotocol/server-everything
  Docker server:  stdio-mcp docker run -i --rm -e MY_API_KEY my/mcp-server-image

Any environment variables the server needs (e.g. MY_API_KEY) must be
exported in your shell before running."""


@click.command(
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
    add_help_option=False,
)
@click.argument("server_command", nargs=-1, type=click.UNPROCESSED, metavar="COMMAND [ARGS]...")
def main(server_command: tuple[str, ...]) -> None:
    """Launch an MCP server as COMMAND and call its tools interactively."""
    if not server_command:
        console.print(USAGE, markup=False, highlight=False, soft_wrap=True)
        return

    from stdio_mcp.config import ClientSettings, ServerConfig
    from stdio_mcp.interactive import run_client
    from stdio_mcp.utils.log import configure_logging

    try:
        settings = ClientSettings()
    except ValidationError as exc:
        raise click.ClickException(f"Invalid STDIO_MCP_* settings:\n{exc}") from exc

    configure_logging(settings.log_level)
    if settings.trace_console or settings.otlp_endpoint:
        from stdio_mcp.utils.telemetry import configure_telemetry

        configure_telemetry(
            export_to_console=settings.trace_console,
            otlp_endpoint=settings.otlp_endpoint,
        )

    config = ServerConfig(command=server_command[0], args=server_command[1:])
    exit_code = asyncio.run(run_client(config, settings))
    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
