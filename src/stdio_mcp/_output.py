"""Shared console output formatters."""

from __future__ import annotations

import json

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from stdio_mcp.models import CallToolResult  # noqa: TC001
from stdio_mcp.session import ToolCatalog  # noqa: TC001

console = Console()


def print_tools_table(tools: ToolCatalog) -> None:
    """Pretty-print the discovered tools as a table."""
    table = Table(title="Discovered Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Parameters")
    table.add_column("Description")

    for tool in tools.values():
        required = set(tool.input_schema.required)
        params = ", ".join(
            f"{name}*" if name in required else name for name in tool.input_schema.properties
        )
        table.add_row(escape(tool.name), escape(params) or "-", escape(_truncate(tool.description)))

    console.print(table)


def print_call_result(result: CallToolResult) -> None:
    """Print the text content of a tool result, or its error details."""
    text = result.text()
    if result.is_error:
        console.print("[red]Server responded with an ERROR during tool execution:[/red]")
        console.print(f"Error Content: {escape(text)}")
        if result.structured_content:
            console.print(
                f"Structured Error: {escape(json.dumps(result.structured_content, default=str))}"
            )
        return

    console.print(f"[green]Server Response:[/green] {escape(text)}")
    skipped = [item.type for item in result.content if item.type != "text"]
    if skipped:
        console.print(f"[dim]({len(skipped)} non-text item(s) not shown: {', '.join(skipped)})[/dim]")


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
