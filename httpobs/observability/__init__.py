"""
Observability Package

This package provides observability infrastructure including:
- Structured JSON logging (structlog)
- OpenTelemetry tracing and span exporter selection
- The Observability bundle handed to the middleware chain
"""

from httpobs.observability.exporter import (
    ExporterConfig,
    NoopSpanExporter,
    new_span_exporter,
)
from httpobs.observability.logging import (
    LoggerWriter,
    configure_logging,
    get_logger,
    get_noop_logger,
)
from httpobs.observability.manager import (
    Observability,
    get_observability,
    set_observability,
    setup_observability,
)
from httpobs.observability.tracing import (
    TracingMiddleware,
    continue_trace,
    extract_trace_context,
    get_current_span_id,
    get_current_trace_id,
    get_tracer,
    inject_trace_context,
    setup_tracer_provider,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "get_noop_logger",
    "LoggerWriter",
    # Tracing
    "TracingMiddleware",
    "setup_tracer_provider",
    "get_tracer",
    "get_current_trace_id",
    "get_current_span_id",
    "inject_trace_context",
    "extract_trace_context",
    "continue_trace",
    # Exporters
    "ExporterConfig",
    "NoopSpanExporter",
    "new_span_exporter",
    # Bundle
    "Observability",
    "setup_observability",
    "set_observability",
    "get_observability",
]
