"""
OpenTelemetry Tracing Module

This module provides trace-context propagation and the server-span middleware.

Reference Documents:
- W3C Trace Context: traceparent / tracestate headers
- W3C Baggage: baggage header
- OpenTelemetry SDK: TracerProvider, BatchSpanProcessor

Pattern: Distributed tracing for observability
Anti-Pattern Avoided: Uses Optional[T] with explicit None defaults

Nothing in this module installs a global tracer provider. Middleware and
helpers receive the provider explicitly; when none is given the no-op
provider is used.
"""

from typing import Any, Callable, Iterable, Optional

from opentelemetry import context as otel_context
from opentelemetry import trace
from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.context import Context
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.trace import SpanKind, Status, StatusCode, Tracer
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator
from starlette.datastructures import MutableHeaders

TRACER_NAME = "httpobs"

# Composite propagator: W3C TraceContext + W3C Baggage
PROPAGATOR = CompositePropagator(
    [TraceContextTextMapPropagator(), W3CBaggagePropagator()]
)


# =============================================================================
# TracerProvider Configuration
# =============================================================================


def setup_tracer_provider(
    exporter: SpanExporter,
    service_name: str = "httpobs",
    service_version: Optional[str] = None,
    batch: bool = True,
) -> TracerProvider:
    """
    Build a TracerProvider that ships spans to the given exporter.

    The provider samples every span. It is returned, not installed globally;
    callers own its shutdown.

    Args:
        exporter: Span exporter (see httpobs.observability.exporter)
        service_name: Resource service name
        service_version: Optional resource service version
        batch: Use a BatchSpanProcessor (True) or a SimpleSpanProcessor

    Returns:
        Configured TracerProvider
    """
    attributes: dict[str, str] = {SERVICE_NAME: service_name}
    if service_version:
        attributes[SERVICE_VERSION] = service_version

    provider = TracerProvider(resource=Resource.create(attributes))
    if batch:
        provider.add_span_processor(BatchSpanProcessor(exporter))
    else:
        provider.add_span_processor(SimpleSpanProcessor(exporter))
    return provider


def get_tracer(
    tracer_provider: Optional[trace.TracerProvider] = None,
    name: str = TRACER_NAME,
) -> Tracer:
    """
    Get a named tracer from an explicit provider.

    Args:
        tracer_provider: Provider to use (default: no-op provider)
        name: Instrumentation scope name

    Returns:
        Tracer instance
    """
    provider = tracer_provider or trace.NoOpTracerProvider()
    return provider.get_tracer(name)


# =============================================================================
# Trace ID and Span ID Functions
# =============================================================================


def get_current_trace_id() -> Optional[str]:
    """
    Get the current trace ID as hex string.

    Returns:
        32-character hex string or None if no active span
    """
    span_context = trace.get_current_span().get_span_context()

    if span_context.trace_id == 0:
        return None

    return format(span_context.trace_id, "032x")


def get_current_span_id() -> Optional[str]:
    """
    Get the current span ID as hex string.

    Returns:
        16-character hex string or None if no active span
    """
    span_context = trace.get_current_span().get_span_context()

    if span_context.span_id == 0:
        return None

    return format(span_context.span_id, "016x")


# =============================================================================
# Context Propagation
# =============================================================================


def headers_to_carrier(headers: Iterable[tuple[bytes, bytes]]) -> dict[str, str]:
    """
    Convert raw ASGI headers to a carrier dict for propagation.

    Header names are lower-cased; repeated headers are joined with a comma.
    """
    carrier: dict[str, str] = {}
    for key, value in headers:
        name = key.decode("latin-1").lower()
        text = value.decode("latin-1")
        if name in carrier:
            carrier[name] = f"{carrier[name]},{text}"
        else:
            carrier[name] = text
    return carrier


def extract_trace_context(
    carrier: dict[str, str], context: Optional[Context] = None
) -> Context:
    """
    Extract trace and baggage state from incoming headers.

    Args:
        carrier: Lower-cased header dict
        context: Context to extend (default: the current context)

    Returns:
        Context with the extracted remote span and baggage
    """
    return PROPAGATOR.extract(carrier, context=context)


def inject_trace_context(
    carrier: Optional[dict[str, str]] = None,
    context: Optional[Context] = None,
) -> dict[str, str]:
    """
    Inject trace context into a header dict for outbound messages.

    Args:
        carrier: Existing headers dict to inject into (optional)
        context: Context to serialize (default: the current context)

    Returns:
        Headers dict with traceparent (and baggage when present) injected
    """
    carrier = carrier if carrier is not None else {}
    PROPAGATOR.inject(carrier, context=context)
    return carrier


def continue_trace(carrier: dict[str, str]) -> Context:
    """
    Resolve the parent context for a new span.

    Continues the current span when one is active, so spans opened by inner
    middleware nest under outer ones; otherwise extracts the remote parent
    from the headers.
    """
    if trace.get_current_span().get_span_context().is_valid:
        return otel_context.get_current()
    return extract_trace_context(carrier)


# =============================================================================
# TracingMiddleware
# =============================================================================


class TracingMiddleware:
    """
    ASGI middleware for OpenTelemetry tracing.

    This middleware:
    - Extracts trace context and baggage from request headers
    - Creates a SERVER span named "METHOD path" for each HTTP request
    - Injects the span's traceparent/baggage into response headers
    - Records status code, exceptions and error status on the span
    - Exposes trace_id/span_id on scope["state"] for handlers
    """

    def __init__(
        self,
        app: Callable[..., Any],
        tracer_provider: Optional[trace.TracerProvider] = None,
        exclude_paths: Optional[list[str]] = None,
        tracer_name: str = TRACER_NAME,
    ) -> None:
        """
        Initialize TracingMiddleware.

        Args:
            app: ASGI application to wrap
            tracer_provider: Provider for the server spans (default: no-op)
            exclude_paths: Paths to exclude from tracing
            tracer_name: Name for the tracer
        """
        self.app = app
        self.exclude_paths = exclude_paths or []
        self.tracer = get_tracer(tracer_provider, tracer_name)

    async def __call__(
        self,
        scope: dict[str, Any],
        receive: Callable[..., Any],
        send: Callable[..., Any],
    ) -> None:
        """
        Process an ASGI request.

        Args:
            scope: ASGI scope dict
            receive: ASGI receive callable
            send: ASGI send callable
        """
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "GET")
        path = scope.get("path", "/")

        if path in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        parent_context = extract_trace_context(
            headers_to_carrier(scope.get("headers", []))
        )
        status_code = 500  # Default if not captured

        with self.tracer.start_as_current_span(
            f"{method} {path}",
            context=parent_context,
            kind=SpanKind.SERVER,
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            outbound = inject_trace_context()

            async def send_wrapper(message: dict[str, Any]) -> None:
                nonlocal status_code
                if message["type"] == "http.response.start":
                    status_code = message.get("status", 500)
                    message.setdefault("headers", [])
                    headers = MutableHeaders(scope=message)
                    for key, value in outbound.items():
                        headers[key] = value
                await send(message)

            state = scope.setdefault("state", {})
            state["trace_id"] = get_current_trace_id()
            state["span_id"] = get_current_span_id()

            span.set_attribute("http.method", method)
            span.set_attribute("http.target", _target(scope))

            try:
                await self.app(scope, receive, send_wrapper)
            except Exception as e:
                span.set_attribute("http.status_code", status_code)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.record_exception(e)
                raise

            span.set_attribute("http.status_code", status_code)
            if status_code >= 500:
                span.set_status(Status(StatusCode.ERROR))
            else:
                span.set_status(Status(StatusCode.OK))


def _target(scope: dict[str, Any]) -> str:
    path = scope.get("path", "/")
    query = scope.get("query_string", b"")
    if query:
        return f"{path}?{query.decode('latin-1')}"
    return path
