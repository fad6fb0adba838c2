"""
HTTP Client Module

This module provides the outbound side of the pipeline: an httpx client
factory and a transport that traces and access-logs every outgoing request.

Reference Documents:
- httpx transports: AsyncBaseTransport.handle_async_request()
- W3C Trace Context: traceparent injected into outgoing requests

Pattern: Factory pattern for creating configured HTTP clients
Pattern: Decorator transport wrapping the real connection pool
Anti-Pattern Avoided: Uses Optional[T] with explicit None defaults
"""

import time
from typing import Any, Optional

import httpx
from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

from httpobs.core.exceptions import ErrorList
from httpobs.middleware.access_log import (
    MAX_LOGGED_BODY_BYTES,
    TRUNCATED_BODY_PLACEHOLDER,
    redact_sensitive_headers,
)
from httpobs.middleware.recorder import decode_body, flatten_headers
from httpobs.models.access_log import AccessLogEntry, HTTPData
from httpobs.observability.logging import get_noop_logger
from httpobs.observability.tracing import TRACER_NAME, inject_trace_context


# =============================================================================
# Default Configuration Constants
# =============================================================================


DEFAULT_TIMEOUT_SECONDS: float = 30.0
"""Default timeout for HTTP requests in seconds."""

DEFAULT_MAX_CONNECTIONS: int = 100
"""Maximum number of connections in the pool."""

DEFAULT_MAX_KEEPALIVE: int = 20
"""Maximum number of keepalive connections."""

DEFAULT_RETRY_COUNT: int = 3
"""Default number of connection-level retries."""


# =============================================================================
# Access-Log Transport
# =============================================================================


class AccessLogTransport(httpx.AsyncBaseTransport):
    """
    httpx transport that traces and logs outgoing requests.

    For each request:
    - opens a CLIENT span "METHOD path"
    - injects traceparent/baggage into the request headers
    - forwards to the wrapped transport
    - emits one access-log record (same shape as the server-side record)

    Transport errors are logged and recorded on the span, then re-raised.

    Example:
        >>> transport = AccessLogTransport(logger=get_logger("outbound"))
        >>> client = httpx.AsyncClient(transport=transport)
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[Any] = None,
        tracer_provider: Optional[trace.TracerProvider] = None,
        message: str = "outgoing request log",
        max_body_bytes: int = MAX_LOGGED_BODY_BYTES,
    ) -> None:
        self._transport = transport or httpx.AsyncHTTPTransport()
        self._logger = logger if logger is not None else get_noop_logger()
        provider = tracer_provider or trace.NoOpTracerProvider()
        self._tracer = provider.get_tracer(TRACER_NAME)
        self._message = message
        self._max_body_bytes = max_body_bytes

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        start = time.perf_counter_ns()
        errors = ErrorList()
        entry = AccessLogEntry(
            method=request.method,
            host=request.url.netloc.decode("ascii"),
            path=request.url.raw_path.decode("ascii"),
        )

        with self._tracer.start_as_current_span(
            f"{request.method} {request.url.path}",
            kind=SpanKind.CLIENT,
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            span.set_attribute("http.method", request.method)
            span.set_attribute("http.url", str(request.url))
            try:
                for key, value in inject_trace_context().items():
                    request.headers[key] = value

                body = await request.aread()
                entry.request = HTTPData(
                    header_map=redact_sensitive_headers(
                        flatten_headers(request.headers.raw)
                    ),
                    body=decode_body(body),
                )

                try:
                    response = await self._transport.handle_async_request(request)
                except Exception as e:
                    errors.append("failed to send request", e)
                    span.record_exception(e)
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    raise

                content = await response.aread()
                span.set_attribute("http.status_code", response.status_code)
                if response.status_code >= 500:
                    span.set_status(Status(StatusCode.ERROR))

                logged_body: Any
                if len(content) >= self._max_body_bytes:
                    logged_body = TRUNCATED_BODY_PLACEHOLDER
                else:
                    logged_body = decode_body(content)
                entry.response = HTTPData(
                    status_code=response.status_code,
                    header_map=redact_sensitive_headers(
                        flatten_headers(response.headers.raw)
                    ),
                    body=logged_body,
                )
                return response
            finally:
                entry.error = errors.message()
                entry.elapsed_time_ns = time.perf_counter_ns() - start
                self._logger.info(self._message, **entry.to_log_fields())

    async def aclose(self) -> None:
        await self._transport.aclose()


# =============================================================================
# HTTP Client Factory
# =============================================================================


def create_http_client(
    base_url: Optional[str] = None,
    timeout_seconds: Optional[float] = None,
    max_connections: Optional[int] = None,
    max_keepalive: Optional[int] = None,
    retries: Optional[int] = None,
    headers: Optional[dict[str, str]] = None,
    logger: Optional[Any] = None,
    tracer_provider: Optional[trace.TracerProvider] = None,
) -> httpx.AsyncClient:
    """
    Create a traced, access-logged HTTP client with connection pooling.

    Args:
        base_url: Base URL for all requests (e.g., "http://localhost:8080")
        timeout_seconds: Request timeout in seconds (default: 30.0)
        max_connections: Maximum connections in pool (default: 100)
        max_keepalive: Maximum keepalive connections (default: 20)
        retries: Number of connection retries (default: 3)
        headers: Additional headers to include in all requests
        logger: structlog logger for outgoing access-log records
        tracer_provider: Provider for the CLIENT spans

    Returns:
        httpx.AsyncClient: Configured async HTTP client

    Example:
        >>> client = create_http_client(base_url="http://orders:8080")
        >>> async with client:
        ...     response = await client.get("/ping")
    """
    timeout = timeout_seconds if timeout_seconds is not None else DEFAULT_TIMEOUT_SECONDS
    max_conn = max_connections if max_connections is not None else DEFAULT_MAX_CONNECTIONS
    max_keep = max_keepalive if max_keepalive is not None else DEFAULT_MAX_KEEPALIVE
    retry_count = retries if retries is not None else DEFAULT_RETRY_COUNT

    limits = httpx.Limits(
        max_connections=max_conn,
        max_keepalive_connections=max_keep,
    )
    timeout_config = httpx.Timeout(
        connect=timeout,
        read=timeout,
        write=timeout,
        pool=timeout,
    )

    default_headers = {
        "User-Agent": "httpobs/1.0",
        "Accept": "application/json",
    }
    if headers:
        default_headers.update(headers)

    transport = AccessLogTransport(
        transport=httpx.AsyncHTTPTransport(retries=retry_count, limits=limits),
        logger=logger,
        tracer_provider=tracer_provider,
    )

    return httpx.AsyncClient(
        base_url=base_url or "",
        timeout=timeout_config,
        headers=default_headers,
        transport=transport,
    )
