"""
Access-Log Capture Middleware

Captures request and response bodies and metadata of every HTTP exchange
into one structured log record, without changing what the wrapped app sees
or what the client receives.

Reference Documents:
- ASGI HTTP connection scope: receive/send message flow
- structlog: keyword-argument event rendering

Flow per request:
1. Skip entirely when should_log(scope) is False
2. Open "METHOD path [access log]" under the current span (or the remote
   parent from traceparent/baggage); "capture request" covers only the
   body read
3. Run the app against a ResponseRecorder
4. "capture response": copy the recorded response to the client with
   propagation headers injected
5. Emit the record with elapsed_time_ns and any accumulated errors

Anti-Pattern Avoided: No bare except clauses; handler exceptions propagate
"""

import time
from typing import Any, Callable, Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import BaseModel, ConfigDict, field_validator

from httpobs.core.exceptions import ErrorList
from httpobs.middleware.recorder import (
    ResponseRecorder,
    decode_body,
    flatten_headers,
    read_request_body,
)
from httpobs.models.access_log import AccessLogEntry, HTTPData
from httpobs.observability.logging import get_noop_logger
from httpobs.observability.tracing import (
    TRACER_NAME,
    continue_trace,
    headers_to_carrier,
    inject_trace_context,
)


# =============================================================================
# Constants
# =============================================================================

MAX_LOGGED_BODY_BYTES: int = 1_000_000
"""Response bodies of this size or larger are logged as a placeholder."""

TRUNCATED_BODY_PLACEHOLDER = "message larger than 1MB to log"

REDACTED = "[REDACTED]"

# Headers whose values never reach the log (case-insensitive substring match)
SENSITIVE_HEADER_PATTERNS = [
    "authorization",
    "api-key",
    "apikey",
    "x-api-key",
    "api_key",
    "x-auth-token",
    "cookie",
    "set-cookie",
]


def redact_sensitive_headers(headers: dict[str, str]) -> dict[str, str]:
    """
    Redact sensitive headers from a flattened header map.

    Args:
        headers: Dictionary of HTTP headers

    Returns:
        Dictionary with sensitive values replaced with [REDACTED]
    """
    redacted = {}
    for key, value in headers.items():
        key_lower = key.lower()
        is_sensitive = any(
            pattern in key_lower for pattern in SENSITIVE_HEADER_PATTERNS
        )
        redacted[key] = REDACTED if is_sensitive else value
    return redacted


def exclude_paths(*paths: str) -> Callable[[dict[str, Any]], bool]:
    """
    Build a should_log predicate that skips the given exact paths.

    Example:
        >>> AccessLogConfig(should_log=exclude_paths("/metrics", "/ping"))
    """
    skipped = frozenset(paths)

    def should_log(scope: dict[str, Any]) -> bool:
        return scope.get("path") not in skipped

    return should_log


# =============================================================================
# Configuration
# =============================================================================


class AccessLogConfig(BaseModel):
    """
    Options for AccessLogMiddleware.

    Attributes:
        message: Event name of every record
        logger: structlog logger (default: discards everything)
        tracer_provider: Provider for the capture spans (default: no-op)
        should_log: Predicate on the ASGI scope; False skips capture
        max_body_bytes: Response bodies this size or larger are replaced by
            TRUNCATED_BODY_PLACEHOLDER in the record
        redact_headers: Redact credential headers in the record
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True, frozen=True, validate_default=True
    )

    message: str = "request logger"
    logger: Any = None
    tracer_provider: Any = None
    should_log: Optional[Callable[[dict[str, Any]], bool]] = None
    max_body_bytes: int = MAX_LOGGED_BODY_BYTES
    redact_headers: bool = True

    @field_validator("logger", mode="before")
    @classmethod
    def default_logger(cls, v: Any) -> Any:
        return v if v is not None else get_noop_logger()

    @field_validator("tracer_provider", mode="before")
    @classmethod
    def default_tracer_provider(cls, v: Any) -> Any:
        return v if v is not None else trace.NoOpTracerProvider()

    @field_validator("max_body_bytes")
    @classmethod
    def validate_max_body_bytes(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_body_bytes must be positive")
        return v


# =============================================================================
# Middleware
# =============================================================================


class AccessLogMiddleware:
    """
    ASGI middleware that emits one access-log record per HTTP request.

    Non-HTTP scopes pass through untouched.
    """

    def __init__(
        self,
        app: Callable[..., Any],
        config: Optional[AccessLogConfig] = None,
    ) -> None:
        """
        Initialize AccessLogMiddleware.

        Args:
            app: ASGI application to wrap
            config: Middleware options (default: AccessLogConfig())
        """
        self.app = app
        self.config = config or AccessLogConfig()
        self.logger = self.config.logger
        self.tracer = self.config.tracer_provider.get_tracer(TRACER_NAME)

    async def __call__(
        self,
        scope: dict[str, Any],
        receive: Callable[..., Any],
        send: Callable[..., Any],
    ) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        should_log = self.config.should_log
        if should_log is not None and not should_log(scope):
            await self.app(scope, receive, send)
            return

        start = time.perf_counter_ns()
        errors = ErrorList()
        raw_headers = scope.get("headers") or []
        method = scope.get("method")
        path = scope.get("path")

        entry = AccessLogEntry(
            method=method,
            host=_host(scope, raw_headers),
            path=_path_with_query(scope),
        )
        parent_context = continue_trace(headers_to_carrier(raw_headers))

        with self.tracer.start_as_current_span(
            f"{method or ''} {path or ''} [access log]",
            context=parent_context,
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            outbound_headers = inject_trace_context()
            try:
                with self.tracer.start_as_current_span(
                    "capture request",
                    record_exception=False,
                    set_status_on_exception=False,
                ) as request_span:
                    body, replay_receive = await read_request_body(receive, errors)
                    # errors is empty before the read, so anything here is a read failure
                    for error in errors:
                        request_span.record_exception(error)
                        request_span.set_status(Status(StatusCode.ERROR, str(error)))
                    entry.request = HTTPData(
                        header_map=self._header_map(raw_headers),
                        body=decode_body(body),
                    )

                recorder = ResponseRecorder()
                try:
                    await self.app(scope, replay_receive, recorder.send)
                except Exception as e:
                    errors.append("handler raised", e)
                    span.record_exception(e)
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    raise

                with self.tracer.start_as_current_span(
                    "capture response",
                    record_exception=False,
                    set_status_on_exception=False,
                ) as response_span:
                    await self._relay(
                        recorder, send, outbound_headers, entry, errors, response_span
                    )
            finally:
                entry.error = errors.message()
                entry.elapsed_time_ns = time.perf_counter_ns() - start
                self.logger.info(self.config.message, **entry.to_log_fields())

    async def _relay(
        self,
        recorder: ResponseRecorder,
        send: Callable[..., Any],
        outbound_headers: dict[str, str],
        entry: AccessLogEntry,
        errors: ErrorList,
        span: trace.Span,
    ) -> None:
        if not recorder.started:
            return

        sent_headers = recorder.raw_headers
        try:
            sent_headers = await recorder.replay(send, outbound_headers)
        except Exception as e:
            error = errors.append("failed to write to actual response writer", e)
            span.record_exception(error)
            span.set_status(Status(StatusCode.ERROR, str(error)))

        body = recorder.body
        logged_body: Any
        if len(body) >= self.config.max_body_bytes:
            logged_body = TRUNCATED_BODY_PLACEHOLDER
        else:
            logged_body = decode_body(body)

        entry.response = HTTPData(
            status_code=recorder.status_code,
            header_map=self._header_map(sent_headers),
            body=logged_body,
        )

    def _header_map(self, raw_headers: list[tuple[bytes, bytes]]) -> dict[str, str]:
        flat = flatten_headers(raw_headers)
        if self.config.redact_headers:
            return redact_sensitive_headers(flat)
        return flat


def _host(scope: dict[str, Any], raw_headers: list[tuple[bytes, bytes]]) -> Optional[str]:
    for key, value in raw_headers:
        if key.lower() == b"host":
            return value.decode("latin-1")
    server = scope.get("server")
    if server:
        host, port = server[0], server[1]
        return f"{host}:{port}" if port is not None else str(host)
    return None


def _path_with_query(scope: dict[str, Any]) -> Optional[str]:
    path = scope.get("path")
    if path is None:
        return None
    query = scope.get("query_string", b"")
    if query:
        return f"{path}?{query.decode('latin-1')}"
    return path
