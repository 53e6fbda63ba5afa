"""Observability: OpenTelemetry tracing and structured logging."""

from txtsearch.observability.context import get_trace_context, set_trace_context, trace_context
from txtsearch.observability.logging import JsonFormatter, configure_logging
from txtsearch.observability.tracing import configure_trace_exporter, create_span, get_tracer, init_tracing


__all__ = [
    "JsonFormatter",
    "configure_logging",
    "configure_trace_exporter",
    "create_span",
    "get_trace_context",
    "get_tracer",
    "init_tracing",
    "set_trace_context",
    "trace_context",
]
