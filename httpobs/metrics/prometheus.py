"""
Prometheus Metric Backend

This module implements the Metric contract on top of prometheus_client.

Reference Documents:
- prometheus_client: Counter, Gauge, Histogram, CollectorRegistry
- Prometheus exposition format served via make_asgi_app()

Pattern: Registry per instance (no process-global REGISTRY), so tests and
embedding applications can run several pipelines side by side.

Concurrency:
- Lookups read the name -> collector map without taking the lock
- A miss takes the lock, re-checks, then creates and registers the collector
- At most one collector is ever registered per name
"""

import threading
from dataclasses import dataclass
from typing import Any, Optional, Union

from prometheus_client import (
    CollectorRegistry,
    Counter,
    GCCollector,
    Gauge,
    Histogram,
    PlatformCollector,
    ProcessCollector,
    make_asgi_app,
)

from httpobs.core.exceptions import ConfigurationError, LabelMismatchError
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

# Histogram.DEFAULT_BUCKETS expressed in nanoseconds (timers observe ns)
NANOSECOND_BUCKETS: tuple[float, ...] = tuple(
    bucket * 1e9 for bucket in Histogram.DEFAULT_BUCKETS if bucket != float("inf")
)

_Collector = Union[Counter, Gauge, Histogram]


@dataclass(frozen=True)
class _Registered:
    kind: str
    collector: _Collector
    label_names: tuple[str, ...]


# =============================================================================
# Instruments
# =============================================================================


class PrometheusCounter(StatCounter):
    def __init__(self, child: Counter) -> None:
        self._child = child

    def incr(self, count: float = 1) -> None:
        # prometheus_client rejects negative amounts with ValueError
        self._child.inc(count)


class PrometheusGauge(StatGauge):
    def __init__(self, child: Gauge) -> None:
        self._child = child

    def set(self, value: float) -> None:
        self._child.set(value)

    def incr(self, value: float = 1) -> None:
        self._child.inc(value)

    def decr(self, value: float = 1) -> None:
        self._child.dec(value)


class PrometheusTimer(StatTimer):
    def __init__(self, child: Histogram) -> None:
        self._child = child

    def timing(self, delta_ns: int) -> None:
        self._child.observe(delta_ns)


# =============================================================================
# Vectors
# =============================================================================


class _LabeledVec:
    """
    Binds label values by name so callers may list label names in any order.
    """

    def __init__(self, collector: _Collector, label_names: tuple[str, ...]) -> None:
        self._collector = collector
        self._label_names = label_names

    def _child(self, values: tuple[str, ...]) -> Any:
        if len(values) != len(self._label_names):
            raise ValueError(
                f"expected {len(self._label_names)} label values "
                f"{list(self._label_names)}, got {len(values)}"
            )
        if not self._label_names:
            return self._collector
        return self._collector.labels(**dict(zip(self._label_names, values)))


class PrometheusCounterVec(_LabeledVec, CounterVec):
    def with_values(self, *values: str) -> StatCounter:
        return PrometheusCounter(self._child(values))


class PrometheusGaugeVec(_LabeledVec, GaugeVec):
    def with_values(self, *values: str) -> StatGauge:
        return PrometheusGauge(self._child(values))


class PrometheusTimerVec(_LabeledVec, TimerVec):
    def with_values(self, *values: str) -> StatTimer:
        return PrometheusTimer(self._child(values))


# =============================================================================
# Registry
# =============================================================================


class PrometheusMetric(Metric):
    """
    Metric registry backed by a prometheus_client CollectorRegistry.

    Args:
        registry: Registry to register collectors in (default: a new private one)
        prefix: Namespace prepended to every metric name ("{prefix}_{name}")
        enable_runtime_metrics: Also register process, platform and GC collectors

    Raises:
        ConfigurationError: registry is not a CollectorRegistry

    Example:
        >>> metric = PrometheusMetric(prefix="shop")
        >>> metric.get_counter_vec("orders_total", "status").with_values("paid").incr()
    """

    def __init__(
        self,
        registry: Optional[CollectorRegistry] = None,
        prefix: str = "",
        enable_runtime_metrics: bool = False,
    ) -> None:
        if registry is None:
            registry = CollectorRegistry(auto_describe=True)
        if not isinstance(registry, CollectorRegistry):
            raise ConfigurationError(
                "prometheus metric requires a CollectorRegistry, "
                f"got {type(registry).__name__}"
            )

        self._registry = registry
        self._prefix = prefix.strip("_")
        self._lock = threading.Lock()
        self._collectors: dict[str, _Registered] = {}
        self._runtime_collectors: list[Any] = []

        if enable_runtime_metrics:
            namespace = self._prefix
            self._runtime_collectors = [
                ProcessCollector(namespace=namespace, registry=registry),
                PlatformCollector(registry=registry),
                GCCollector(registry=registry),
            ]

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def get_counter_vec(self, name: str, *label_names: str) -> CounterVec:
        entry = self._get_or_create("counter", name, label_names)
        return PrometheusCounterVec(entry.collector, tuple(label_names))

    def get_gauge_vec(self, name: str, *label_names: str) -> GaugeVec:
        entry = self._get_or_create("gauge", name, label_names)
        return PrometheusGaugeVec(entry.collector, tuple(label_names))

    def get_timer_vec(self, name: str, *label_names: str) -> TimerVec:
        entry = self._get_or_create("timer", name, label_names)
        return PrometheusTimerVec(entry.collector, tuple(label_names))

    def exposition_app(self) -> Optional[ASGIApp]:
        return make_asgi_app(registry=self._registry)

    def close(self) -> None:
        """Unregister every collector this instance registered."""
        with self._lock:
            collectors = [entry.collector for entry in self._collectors.values()]
            collectors.extend(self._runtime_collectors)
            self._collectors = {}
            self._runtime_collectors = []

        for collector in collectors:
            self._registry.unregister(collector)

    # =========================================================================
    # Lookup
    # =========================================================================

    def _get_or_create(
        self, kind: str, name: str, label_names: tuple[str, ...]
    ) -> _Registered:
        full_name = self._full_name(name)

        entry = self._collectors.get(full_name)
        if entry is None:
            with self._lock:
                entry = self._collectors.get(full_name)
                if entry is None:
                    entry = _Registered(
                        kind=kind,
                        collector=self._build(kind, full_name, label_names),
                        label_names=tuple(label_names),
                    )
                    self._registry.register(entry.collector)
                    # Copy-on-write keeps unlocked readers on a consistent dict
                    collectors = dict(self._collectors)
                    collectors[full_name] = entry
                    self._collectors = collectors

        if entry.kind != kind:
            raise ConfigurationError(
                f"metric name '{full_name}' already registered as a {entry.kind}, "
                f"cannot reuse it as a {kind}",
                metric_name=full_name,
            )
        if sorted(entry.label_names) != sorted(label_names):
            raise LabelMismatchError(
                metric_name=full_name,
                kind=kind,
                registered_labels=entry.label_names,
                requested_labels=tuple(label_names),
            )
        return entry

    def _full_name(self, name: str) -> str:
        if self._prefix:
            return f"{self._prefix}_{name}"
        return name

    @staticmethod
    def _build(kind: str, name: str, label_names: tuple[str, ...]) -> _Collector:
        documentation = f"{kind} {name}"
        if kind == "counter":
            return Counter(name, documentation, labelnames=label_names, registry=None)
        if kind == "gauge":
            return Gauge(name, documentation, labelnames=label_names, registry=None)
        return Histogram(
            name,
            documentation,
            labelnames=label_names,
            buckets=NANOSECOND_BUCKETS,
            registry=None,
        )
