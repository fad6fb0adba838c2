"""
Span Exporter Selection

Maps one symbolic backend name to a configured OpenTelemetry SpanExporter.

Supported names (case-insensitive, surrounding whitespace ignored):
- "" / NOOP: discard every span
- STDOUT / CONSOLE: pretty JSON written to a file-like sink
- OTLP: OTLP over HTTP/protobuf
- OTLP_GRPC: OTLP over gRPC (insecure channel)
- JAEGER: OTLP over HTTP aimed at the Jaeger collector's OTLP receiver

The dedicated Jaeger exporter is no longer published for Python; Jaeger
collectors accept OTLP natively, so JAEGER is served by the OTLP/HTTP
exporter with its own endpoint setting.
"""

import sys
from typing import Any, Optional, Sequence

import requests
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
    OTLPSpanExporter as OTLPGrpcSpanExporter,
)
from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
    OTLPSpanExporter as OTLPHttpSpanExporter,
)
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import (
    ConsoleSpanExporter,
    SpanExporter,
    SpanExportResult,
)
from pydantic import BaseModel, ConfigDict, Field

from httpobs.core.exceptions import ConfigurationError


# =============================================================================
# Exporter Configuration
# =============================================================================


class ExporterConfig(BaseModel):
    """
    Settings consumed by new_span_exporter().

    Push backend endpoints have no default; the selected backend's endpoint
    must be set.

    Attributes:
        writer: File-like sink for the console exporter (default: sys.stdout)
        jaeger_endpoint: Jaeger collector OTLP/HTTP URL
        otlp_endpoint: OTLP/HTTP collector URL
        otlp_grpc_endpoint: OTLP/gRPC collector address
        session: Optional requests.Session used by the HTTP exporters
        timeout_seconds: Timeout for one export call
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    writer: Any = Field(default=None)
    jaeger_endpoint: str = ""
    otlp_endpoint: str = ""
    otlp_grpc_endpoint: str = ""
    session: Optional[requests.Session] = None
    timeout_seconds: float = Field(default=10.0, gt=0.0)


# =============================================================================
# No-op Exporter
# =============================================================================


class NoopSpanExporter(SpanExporter):
    """Span exporter that accepts and drops every batch."""

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        return None

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True


# =============================================================================
# Selector
# =============================================================================


def new_span_exporter(
    name: str,
    config: Optional[ExporterConfig] = None,
) -> SpanExporter:
    """
    Create the span exporter registered under ``name``.

    Args:
        name: Backend name (see module docstring)
        config: Endpoints, console writer and HTTP session

    Returns:
        Configured SpanExporter

    Raises:
        ConfigurationError: Unknown name, or a push backend with an empty endpoint

    Example:
        >>> exporter = new_span_exporter("otlp", ExporterConfig(otlp_endpoint="http://collector:4318/v1/traces"))
    """
    config = config or ExporterConfig()
    normalized = (name or "").strip().upper()

    if normalized in ("", "NOOP"):
        return NoopSpanExporter()

    if normalized in ("STDOUT", "CONSOLE"):
        return ConsoleSpanExporter(out=config.writer or sys.stdout)

    if normalized == "OTLP":
        endpoint = _require_endpoint(config.otlp_endpoint, "OTLP", "otlp_endpoint")
        return OTLPHttpSpanExporter(
            endpoint=endpoint,
            session=config.session,
            timeout=config.timeout_seconds,
        )

    if normalized == "JAEGER":
        endpoint = _require_endpoint(config.jaeger_endpoint, "JAEGER", "jaeger_endpoint")
        return OTLPHttpSpanExporter(
            endpoint=endpoint,
            session=config.session,
            timeout=config.timeout_seconds,
        )

    if normalized == "OTLP_GRPC":
        endpoint = _require_endpoint(
            config.otlp_grpc_endpoint, "OTLP_GRPC", "otlp_grpc_endpoint"
        )
        return OTLPGrpcSpanExporter(
            endpoint=endpoint,
            insecure=True,
            timeout=config.timeout_seconds,
        )

    raise ConfigurationError(
        f"unknown name='{name}' for OpenTelemetry span exporter",
        exporter_name=name,
    )


def _require_endpoint(endpoint: str, backend: str, field: str) -> str:
    endpoint = (endpoint or "").strip()
    if not endpoint:
        raise ConfigurationError(
            f"cannot use OpenTelemetry {backend} exporter if {field} is empty",
            exporter_name=backend,
        )
    return endpoint
