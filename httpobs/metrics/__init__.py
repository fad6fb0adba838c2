"""
Metrics Package

Label-consistent metric registries:
- base: Metric / vector / instrument contracts
- prometheus: prometheus_client backend
- combine: fan-out over several backends
- noop: discarding backend
"""

from httpobs.metrics.base import (
    CounterVec,
    GaugeVec,
    Metric,
    StatCounter,
    StatGauge,
    StatTimer,
    TimerVec,
)
from httpobs.metrics.combine import CombinedMetric
from httpobs.metrics.noop import NoopMetric
from httpobs.metrics.prometheus import PrometheusMetric

__all__ = [
    "CombinedMetric",
    "CounterVec",
    "GaugeVec",
    "Metric",
    "NoopMetric",
    "PrometheusMetric",
    "StatCounter",
    "StatGauge",
    "StatTimer",
    "TimerVec",
]
