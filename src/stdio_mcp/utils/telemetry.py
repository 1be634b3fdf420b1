"""OpenTelemetry tracing helpers.

``get_tracer()`` works whether or not the SDK is installed: without a
configured provider every span is a no-op.

Usage::

    from stdio_mcp.utils.telemetry import get_tracer

    _tracer = get_tracer(__name__)

    with _tracer.start_as_current_span("mcp.call_tool") as span:
        span.set_attribute(ATTR_TOOL_NAME, name)

To export spans, call :func:`configure_telemetry` once at startup (requires
the ``otel`` extra: ``pip install stdio-mcp[otel]``).
"""

from __future__ import annotations

import sys
from typing import Any

from opentelemetry import trace

ATTR_SERVER_COMMAND = "stdio_mcp.server.command"
ATTR_SERVER_PID = "stdio_mcp.server.pid"
ATTR_SERVER_NAME = "stdio_mcp.server.name"
ATTR_TOOL_NAME = "stdio_mcp.tool.name"
ATTR_TOOL_IS_ERROR = "stdio_mcp.tool.is_error"
ATTR_TOOL_COUNT = "stdio_mcp.tool.count"
ATTR_RPC_METHOD = "stdio_mcp.rpc.method"
ATTR_RPC_ID = "stdio_mcp.rpc.id"

_INSTRUMENTATION_NAME = "stdio_mcp"


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Return a tracer for *name* (a no-op tracer until telemetry is configured)."""
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def configure_telemetry(
    *,
    service_name: str = "stdio-mcp",
    export_to_console: bool = False,
    otlp_endpoint: str | None = None,
) -> None:
    """Install a tracer provider with the requested exporters.

    Console spans are written to stderr; stdout belongs to the interactive
    console.

    Raises
    ------
    ImportError
        If ``opentelemetry-sdk`` (or, for *otlp_endpoint*, the OTLP exporter)
        is not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace.export import (  # pyright: ignore[reportMissingImports]
            BatchSpanProcessor,
            ConsoleSpanExporter,
            SimpleSpanProcessor,
        )
    except ImportError as exc:
        msg = (
            "opentelemetry-sdk is required for configure_telemetry(). "
            "Install it with: pip install stdio-mcp[otel]"
        )
        raise ImportError(msg) from exc

    provider: Any = TracerProvider(resource=Resource.create({"service.name": service_name}))

    if export_to_console:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))

    if otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(_otlp_exporter(otlp_endpoint)))

    trace.set_tracer_provider(provider)


def _otlp_exporter(endpoint: str) -> Any:
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (  # pyright: ignore[reportMissingImports]
            OTLPSpanExporter,
        )
    except ImportError as exc:
        msg = (
            "opentelemetry-exporter-otlp is required for OTLP export. "
            "Install it with: pip install stdio-mcp[otel]"
        )
        raise ImportError(msg) from exc
    return OTLPSpanExporter(endpoint=endpoint)
