"""
Middleware Package

ASGI interceptors composing the observability pipeline:
- TrailingSlashMiddleware: path normalization
- MetricsMiddleware: request counter/timer and exposition endpoint
- AccessLogMiddleware: structured request/response records
- MiddlewareChain: ordered composition
"""

from httpobs.middleware.access_log import (
    MAX_LOGGED_BODY_BYTES,
    TRUNCATED_BODY_PLACEHOLDER,
    AccessLogConfig,
    AccessLogMiddleware,
    exclude_paths,
)
from httpobs.middleware.chain import MiddlewareChain, build_default_chain
from httpobs.middleware.metrics import MetricsMiddleware, MetricsMiddlewareConfig
from httpobs.middleware.trailing_slash import TrailingSlashMiddleware

__all__ = [
    "MAX_LOGGED_BODY_BYTES",
    "TRUNCATED_BODY_PLACEHOLDER",
    "AccessLogConfig",
    "AccessLogMiddleware",
    "exclude_paths",
    "MiddlewareChain",
    "build_default_chain",
    "MetricsMiddleware",
    "MetricsMiddlewareConfig",
    "TrailingSlashMiddleware",
]
