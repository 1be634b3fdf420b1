"""Interactive tool caller: prompts for a tool and its arguments, prints results.

Arguments are collected from each tool's input schema. Only ``string``
properties can be entered; any other type is reported as unsupported and,
when required, the call is skipped.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rich.markup import escape

from stdio_mcp._output import console, print_call_result, print_tools_table
from stdio_mcp.client import StdioMCPClient
from stdio_mcp.errors import MCPClientError, ProtocolError, TransportError, UnknownToolError

if TYPE_CHECKING:
    from stdio_mcp.config import ClientSettings, ServerConfig
    from stdio_mcp.models import Tool

ReadLine = Callable[[str], str]

QUIT_COMMAND = "quit"


@dataclass(frozen=True)
class ToolParameter:
    """One property of a tool's input schema."""

    name: str
    type: str | None
    description: str | None
    required: bool


def tool_parameters(tool: Tool) -> list[ToolParameter]:
    """List the schema properties of *tool* in declaration order."""
    required = set(tool.input_schema.required)
    params: list[ToolParameter] = []
    for name, schema in tool.input_schema.properties.items():
        if not isinstance(schema, dict):
            continue
        prop_type = schema.get("type")
        description = schema.get("description")
        params.append(
            ToolParameter(
                name=name,
                type=prop_type if isinstance(prop_type, str) else None,
                description=description if isinstance(description, str) else None,
                required=name in required,
            )
        )
    return params


def _read_input(prompt: str) -> str:
    return console.input(prompt)


async def _ask(read_line: ReadLine, prompt: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, read_line, prompt)


async def collect_arguments(tool: Tool, read_line: ReadLine = _read_input) -> dict[str, str] | None:
    """Prompt for each argument of *tool*.

    Returns ``None`` when the call has to be skipped (a required argument is
    blank or has an unsupported type). Raises ``EOFError`` when input ends.
    """
    arguments: dict[str, str] = {}
    for param in tool_parameters(tool):
        if param.type != "string":
            console.print(
                f"[yellow]Warning:[/yellow] Argument '{escape(param.name)}' has type "
                f"'{escape(str(param.type))}', which is not interactively supported."
            )
            if param.required:
                console.print(
                    f"[red]Error:[/red] Required argument '{escape(param.name)}' cannot be "
                    "provided. Skipping tool call."
                )
                return None
            continue

        label = "REQUIRED" if param.required else "OPTIONAL"
        hint = f" - {param.description}" if param.description else ""
        value = await _ask(
            read_line,
            f"> Enter value for '{escape(param.name)}' (string, {label}{escape(hint)}): ",
        )
        if value.strip():
            arguments[param.name] = value
        elif param.required:
            console.print(
                f"[red]Error:[/red] Required argument '{escape(param.name)}' cannot be empty. "
                "Skipping tool call."
            )
            return None
    return arguments


async def interactive_tool_loop(client: StdioMCPClient, read_line: ReadLine = _read_input) -> int:
    """Read tool names and call them until ``quit`` or end of input.

    Returns the process exit code: 0 on quit/EOF, 1 if the connection broke.
    """
    console.print("\n[bold]--- Interactive Tool Caller ---[/bold]")
    console.print(f"Type a tool name to call it, or '{QUIT_COMMAND}' to exit.")
    if not client.tools:
        console.print("[yellow]No tools discovered from the server. Exiting.[/yellow]")
        return 0

    while True:
        try:
            name = (await _ask(read_line, "\n> Enter tool name: ")).strip()
        except EOFError:
            return 0
        if name.lower() == QUIT_COMMAND:
            return 0
        if not name:
            continue

        tool = client.tools.get(name)
        if tool is None:
            console.print(
                f"Unknown tool '{escape(name)}'. Available tools are: "
                f"{escape(', '.join(client.tools))}"
            )
            continue

        try:
            arguments = await collect_arguments(tool, read_line)
        except EOFError:
            return 0
        if arguments is None:
            continue

        console.print(f"Calling tool '{escape(name)}' with arguments: {escape(repr(arguments))}")
        try:
            result = await client.call_tool(name, arguments)
        except TransportError as exc:
            console.print(f"[red]Connection to server lost:[/red] {escape(str(exc))}")
            return 1
        except (ProtocolError, UnknownToolError) as exc:
            console.print(f"[red]Tool call failed:[/red] {escape(str(exc))}")
            continue
        print_call_result(result)


async def run_client(
    config: ServerConfig,
    settings: ClientSettings | None = None,
    read_line: ReadLine = _read_input,
) -> int:
    """Connect to the server described by *config* and run the interactive loop."""
    async with StdioMCPClient(settings) as client:
        console.print(f"Starting server process: {escape(' '.join(config.argv))}")
        try:
            await client.connect_to_server(config)
        except MCPClientError as exc:
            console.print(f"[red]Failed to connect to MCP server:[/red] {escape(str(exc))}")
            return 1

        server = client.server_info
        if server is not None:
            console.print(f"Connected to [bold]{escape(server.name)}[/bold] {escape(server.version)}")
        if client.tools:
            print_tools_table(client.tools)
        return await interactive_tool_loop(client, read_line)
