"""
Metrics Middleware

ASGI middleware that counts and times every HTTP request through a Metric
registry and serves the registry's exposition format at a fixed path.

Reference Documents:
- Services "expose basic metrics themselves" including "response times and
  error rates"
- prometheus_client: make_asgi_app() exposition

Metrics (labels: code, method, path):
- http_requests_total: request counter
- http_requests_duration: request duration timer, nanoseconds

Path normalization replaces UUIDs, numeric IDs and hex IDs with an {id}
placeholder to bound label cardinality.
"""

import re
import time
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from httpobs.core.exceptions import ConfigurationError
from httpobs.metrics.base import Metric
from httpobs.middleware.recorder import ResponseRecorder
from httpobs.observability.logging import get_noop_logger

REQUESTS_TOTAL = "http_requests_total"
REQUESTS_DURATION = "http_requests_duration"
LABEL_NAMES = ("code", "method", "path")


# =============================================================================
# Path Normalization (High Cardinality Prevention)
# =============================================================================

# Order matters: more specific patterns first
_PATH_PATTERNS = [
    # UUID: 8-4-4-4-12 hex pattern
    (re.compile(r"/[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"), "/{id}"),
    # Generic hex ID: 8+ hex chars
    (re.compile(r"/[0-9a-fA-F]{8,}(?=/|$)"), "/{id}"),
    # Numeric ID: pure digits
    (re.compile(r"/\d+(?=/|$)"), "/{id}"),
]


def normalize_path(path: str) -> str:
    """
    Normalize a URL path by replacing dynamic segments with placeholders.

    Args:
        path: The URL path to normalize (e.g., "/v1/orders/12345")

    Returns:
        Normalized path with dynamic segments replaced (e.g., "/v1/orders/{id}")

    Examples:
        >>> normalize_path("/health")
        '/health'
        >>> normalize_path("/v1/orders/123e4567-e89b-12d3-a456-426614174000")
        '/v1/orders/{id}'
    """
    if path == "/":
        return path

    normalized = path
    for pattern, replacement in _PATH_PATTERNS:
        normalized = pattern.sub(replacement, normalized)
    return normalized


# =============================================================================
# Configuration
# =============================================================================


class MetricsMiddlewareConfig(BaseModel):
    """
    Options for MetricsMiddleware.

    Attributes:
        metrics_path: Path served by the metric's exposition app
        logger: structlog logger for relay failures (default: discards everything)
        normalize_paths: Apply normalize_path() to the path label
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True, frozen=True, validate_default=True
    )

    metrics_path: str = "/metrics"
    logger: Any = None
    normalize_paths: bool = False

    @field_validator("logger", mode="before")
    @classmethod
    def default_logger(cls, v: Any) -> Any:
        return v if v is not None else get_noop_logger()


# =============================================================================
# Middleware
# =============================================================================


class MetricsMiddleware:
    """
    ASGI middleware for request counting and timing.

    Raises:
        ConfigurationError: app or metric is None, or the metric has no
            exposition handler
    """

    def __init__(
        self,
        app: Optional[Callable[..., Any]],
        metric: Optional[Metric],
        config: Optional[MetricsMiddlewareConfig] = None,
    ) -> None:
        """
        Initialize MetricsMiddleware.

        Args:
            app: ASGI application to wrap
            metric: Metric registry to record into and expose
            config: Middleware options (default: MetricsMiddlewareConfig())
        """
        if app is None:
            raise ConfigurationError("metrics middleware requires an app to wrap")
        if metric is None:
            raise ConfigurationError("metrics middleware requires a metric registry")

        exposition_app = metric.exposition_app()
        if exposition_app is None:
            raise ConfigurationError(
                "metrics middleware requires a metric with an exposition handler"
            )

        self.app = app
        self.config = config or MetricsMiddlewareConfig()
        self.logger = self.config.logger
        self.exposition_app = exposition_app
        self.requests_total = metric.get_counter_vec(REQUESTS_TOTAL, *LABEL_NAMES)
        self.requests_duration = metric.get_timer_vec(REQUESTS_DURATION, *LABEL_NAMES)

    async def __call__(
        self,
        scope: dict[str, Any],
        receive: Callable[..., Any],
        send: Callable[..., Any],
    ) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        raw_path = scope.get("path", "/")
        if raw_path == self.config.metrics_path:
            await self.exposition_app(scope, receive, send)
            return

        method = scope.get("method", "GET")
        path = normalize_path(raw_path) if self.config.normalize_paths else raw_path

        recorder = ResponseRecorder()
        start = time.perf_counter_ns()
        status_code = "500"  # Default if not captured

        try:
            await self.app(scope, receive, recorder.send)
            if recorder.started:
                status_code = str(recorder.status_code)
        finally:
            elapsed = time.perf_counter_ns() - start
            self.requests_total.with_values(status_code, method, path).incr()
            self.requests_duration.with_values(status_code, method, path).timing(elapsed)

        try:
            await recorder.replay(send)
        except Exception as e:
            self.logger.error(
                "metrics middleware writing response body error",
                error=str(e),
                method=method,
                path=raw_path,
            )
