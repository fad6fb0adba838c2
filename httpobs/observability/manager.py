"""
Observability bundle.

Observability groups the logger, tracer provider and metric registry that a
service hands to its middleware chain and its own code. Missing parts fall
back to no-op implementations; nothing here installs global OpenTelemetry
state.

Example:
    >>> observability = setup_observability(get_settings())
    >>> observability.logger.info("service started")
    >>> observability.shutdown()
"""

from typing import Any, Optional

from opentelemetry import trace
from opentelemetry.trace import Tracer

from httpobs.core.config import Settings
from httpobs.core.exceptions import ShutdownError
from httpobs.metrics.base import Metric
from httpobs.metrics.noop import NoopMetric
from httpobs.metrics.prometheus import PrometheusMetric
from httpobs.observability.exporter import ExporterConfig, new_span_exporter
from httpobs.observability.logging import (
    LoggerWriter,
    configure_logging,
    get_logger,
    get_noop_logger,
)
from httpobs.observability.tracing import TRACER_NAME, setup_tracer_provider


class Observability:
    """
    Logger, tracer provider and metric registry for one service.

    Attributes:
        logger: structlog bound logger
        tracer_provider: OpenTelemetry tracer provider
        tracer: Tracer from tracer_provider named after the service
        metric: Metric registry
    """

    def __init__(
        self,
        logger: Optional[Any] = None,
        tracer_provider: Optional[trace.TracerProvider] = None,
        metric: Optional[Metric] = None,
        tracer_name: str = TRACER_NAME,
    ) -> None:
        self.logger = logger if logger is not None else get_noop_logger()
        self.tracer_provider = (
            tracer_provider if tracer_provider is not None else trace.NoOpTracerProvider()
        )
        self.metric = metric if metric is not None else NoopMetric()
        self.tracer: Tracer = self.tracer_provider.get_tracer(tracer_name)

    def shutdown(self) -> None:
        """
        Flush and shut down the tracer provider, then close the metric.

        Raises:
            ShutdownError: One or more steps failed (all steps still run)
        """
        errors: list[BaseException] = []

        force_flush = getattr(self.tracer_provider, "force_flush", None)
        shutdown = getattr(self.tracer_provider, "shutdown", None)
        for step in (force_flush, shutdown):
            if step is None:
                continue
            try:
                step()
            except Exception as e:
                errors.append(e)

        try:
            self.metric.close()
        except Exception as e:
            errors.append(e)

        if errors:
            raise ShutdownError(errors)


# =============================================================================
# Factory
# =============================================================================


def setup_observability(settings: Settings) -> Observability:
    """
    Build the Observability bundle described by settings.

    Configures structlog, selects the span exporter (console spans go through
    the structured logger at debug level), and creates a private Prometheus
    registry.

    Args:
        settings: Application settings

    Returns:
        Configured Observability

    Raises:
        ConfigurationError: Unknown exporter or empty exporter endpoint
    """
    configure_logging(
        level=settings.log_level,
        json_output=settings.log_format == "json",
        force=True,
    )
    logger = get_logger(settings.service_name, level=settings.log_level)

    exporter = new_span_exporter(
        settings.otel_exporter,
        ExporterConfig(
            writer=LoggerWriter(logger.bind(component="span_exporter")),
            jaeger_endpoint=settings.otel_jaeger_endpoint,
            otlp_endpoint=settings.otel_otlp_endpoint,
            otlp_grpc_endpoint=settings.otel_otlp_grpc_endpoint,
            timeout_seconds=settings.otel_export_timeout_seconds,
        ),
    )
    tracer_provider = setup_tracer_provider(
        exporter,
        service_name=settings.service_name,
        service_version=settings.service_version,
    )
    metric = PrometheusMetric(
        prefix=settings.metrics_prefix,
        enable_runtime_metrics=settings.metrics_runtime_collectors,
    )

    return Observability(
        logger=logger,
        tracer_provider=tracer_provider,
        metric=metric,
        tracer_name=settings.service_name,
    )


# =============================================================================
# Explicitly Installed Default
# =============================================================================

_default: Optional[Observability] = None


def set_observability(observability: Optional[Observability]) -> None:
    """Install (or clear, with None) the process-wide default bundle."""
    global _default
    _default = observability


def get_observability() -> Observability:
    """
    Return the bundle installed with set_observability().

    Raises:
        RuntimeError: Nothing has been installed
    """
    if _default is None:
        raise RuntimeError("observability has not been initialized; call set_observability()")
    return _default
