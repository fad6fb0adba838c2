"""
Metric fan-out.

CombinedMetric forwards every lookup and every instrument operation to all
of its children, so one call site can feed several backends at once.
"""

from typing import Optional

from httpobs.core.exceptions import ConfigurationError, ShutdownError
from httpobs.metrics.base import (
    ASGIApp,
    CounterVec,
    GaugeVec,
    Metric,
    StatCounter,
    StatGauge,
    StatTimer,
    TimerVec,
)
from httpobs.metrics.noop import NoopCounterVec, NoopGaugeVec, NoopTimerVec


# =============================================================================
# Instruments
# =============================================================================


class CombinedCounter(StatCounter):
    def __init__(self, counters: list[StatCounter]) -> None:
        self._counters = counters

    def incr(self, count: float = 1) -> None:
        for counter in self._counters:
            counter.incr(count)


class CombinedGauge(StatGauge):
    def __init__(self, gauges: list[StatGauge]) -> None:
        self._gauges = gauges

    def set(self, value: float) -> None:
        for gauge in self._gauges:
            gauge.set(value)

    def incr(self, value: float = 1) -> None:
        for gauge in self._gauges:
            gauge.incr(value)

    def decr(self, value: float = 1) -> None:
        for gauge in self._gauges:
            gauge.decr(value)


class CombinedTimer(StatTimer):
    def __init__(self, timers: list[StatTimer]) -> None:
        self._timers = timers

    def timing(self, delta_ns: int) -> None:
        for timer in self._timers:
            timer.timing(delta_ns)


# =============================================================================
# Vectors
# =============================================================================


class CombinedCounterVec(CounterVec):
    def __init__(self, vecs: list[CounterVec]) -> None:
        self._vecs = vecs

    def with_values(self, *values: str) -> StatCounter:
        return CombinedCounter([vec.with_values(*values) for vec in self._vecs])


class CombinedGaugeVec(GaugeVec):
    def __init__(self, vecs: list[GaugeVec]) -> None:
        self._vecs = vecs

    def with_values(self, *values: str) -> StatGauge:
        return CombinedGauge([vec.with_values(*values) for vec in self._vecs])


class CombinedTimerVec(TimerVec):
    def __init__(self, vecs: list[TimerVec]) -> None:
        self._vecs = vecs

    def with_values(self, *values: str) -> StatTimer:
        return CombinedTimer([vec.with_values(*values) for vec in self._vecs])


# =============================================================================
# Registry
# =============================================================================


class CombinedMetric(Metric):
    """
    Fan-out over several Metric backends.

    With no children every lookup returns a no-op vector. The exposition app
    is the first child's that has one.

    Raises:
        ConfigurationError: A child is None

    Example:
        >>> metric = CombinedMetric(PrometheusMetric(), statsd_metric)
    """

    def __init__(self, *metrics: Metric) -> None:
        for index, metric in enumerate(metrics):
            if metric is None:
                raise ConfigurationError(
                    f"cannot add nil metric to combined metrics (position {index})"
                )
        self._metrics: tuple[Metric, ...] = tuple(metrics)

    def get_counter_vec(self, name: str, *label_names: str) -> CounterVec:
        if not self._metrics:
            return NoopCounterVec()
        return CombinedCounterVec(
            [metric.get_counter_vec(name, *label_names) for metric in self._metrics]
        )

    def get_gauge_vec(self, name: str, *label_names: str) -> GaugeVec:
        if not self._metrics:
            return NoopGaugeVec()
        return CombinedGaugeVec(
            [metric.get_gauge_vec(name, *label_names) for metric in self._metrics]
        )

    def get_timer_vec(self, name: str, *label_names: str) -> TimerVec:
        if not self._metrics:
            return NoopTimerVec()
        return CombinedTimerVec(
            [metric.get_timer_vec(name, *label_names) for metric in self._metrics]
        )

    def exposition_app(self) -> Optional[ASGIApp]:
        for metric in self._metrics:
            app = metric.exposition_app()
            if app is not None:
                return app
        return None

    def close(self) -> None:
        """
        Close every child, then raise one ShutdownError for all failures.
        """
        errors: list[BaseException] = []
        for metric in self._metrics:
            try:
                metric.close()
            except Exception as e:
                errors.append(e)

        if errors:
            raise ShutdownError(errors)
