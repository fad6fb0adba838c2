"""
Middleware chain composition.

A MiddlewareChain is an immutable ordered list of stages; each stage takes
an ASGI app and returns a wrapped ASGI app. The first stage is outermost.

Default order:
    trailing slash -> metrics -> tracing -> access log -> handler
"""

from typing import Any, Callable

from httpobs.core.config import Settings
from httpobs.middleware.access_log import (
    AccessLogConfig,
    AccessLogMiddleware,
    exclude_paths,
)
from httpobs.middleware.metrics import MetricsMiddleware, MetricsMiddlewareConfig
from httpobs.middleware.trailing_slash import TrailingSlashMiddleware
from httpobs.observability.manager import Observability
from httpobs.observability.tracing import TracingMiddleware

ASGIApp = Callable[..., Any]
Stage = Callable[[ASGIApp], ASGIApp]


class MiddlewareChain:
    """
    Ordered, immutable list of middleware stages.

    Example:
        >>> chain = MiddlewareChain(TrailingSlashMiddleware, lambda app: TracingMiddleware(app, provider))
        >>> asgi_app = chain.wrap(app)
    """

    def __init__(self, *stages: Stage) -> None:
        self._stages: tuple[Stage, ...] = tuple(stages)

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    def append(self, *stages: Stage) -> "MiddlewareChain":
        """Return a new chain with ``stages`` added innermost."""
        return MiddlewareChain(*self._stages, *stages)

    def wrap(self, app: ASGIApp) -> ASGIApp:
        """Wrap ``app`` so the first stage receives requests first."""
        for stage in reversed(self._stages):
            app = stage(app)
        return app

    def __len__(self) -> int:
        return len(self._stages)


def build_default_chain(observability: Observability, settings: Settings) -> MiddlewareChain:
    """
    Build the standard chain from an Observability bundle and settings.

    The metrics path and access_log_skip_paths are excluded from access logging.
    """
    skip_paths = set(settings.access_log_skip_paths)
    skip_paths.add(settings.metrics_path)

    access_log_config = AccessLogConfig(
        message=settings.access_log_message,
        logger=observability.logger,
        tracer_provider=observability.tracer_provider,
        should_log=exclude_paths(*sorted(skip_paths)),
        max_body_bytes=settings.access_log_max_body_bytes,
        redact_headers=settings.access_log_redact_headers,
    )
    metrics_config = MetricsMiddlewareConfig(
        metrics_path=settings.metrics_path,
        logger=observability.logger,
        normalize_paths=settings.metrics_normalize_paths,
    )

    return MiddlewareChain(
        TrailingSlashMiddleware,
        lambda app: MetricsMiddleware(app, observability.metric, metrics_config),
        lambda app: TracingMiddleware(
            app,
            tracer_provider=observability.tracer_provider,
            exclude_paths=[settings.metrics_path],
        ),
        lambda app: AccessLogMiddleware(app, access_log_config),
    )
