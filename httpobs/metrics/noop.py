"""No-op metric backend: every instrument accepts values and drops them."""

from typing import Optional

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


class NoopCounter(StatCounter):
    def incr(self, count: float = 1) -> None:
        return None


class NoopGauge(StatGauge):
    def set(self, value: float) -> None:
        return None

    def incr(self, value: float = 1) -> None:
        return None

    def decr(self, value: float = 1) -> None:
        return None


class NoopTimer(StatTimer):
    def timing(self, delta_ns: int) -> None:
        return None


class NoopCounterVec(CounterVec):
    def with_values(self, *values: str) -> StatCounter:
        return NoopCounter()


class NoopGaugeVec(GaugeVec):
    def with_values(self, *values: str) -> StatGauge:
        return NoopGauge()


class NoopTimerVec(TimerVec):
    def with_values(self, *values: str) -> StatTimer:
        return NoopTimer()


class NoopMetric(Metric):
    """Metric registry that records nothing and has no exposition handler."""

    def get_counter_vec(self, name: str, *label_names: str) -> CounterVec:
        return NoopCounterVec()

    def get_gauge_vec(self, name: str, *label_names: str) -> GaugeVec:
        return NoopGaugeVec()

    def get_timer_vec(self, name: str, *label_names: str) -> TimerVec:
        return NoopTimerVec()

    def exposition_app(self) -> Optional[ASGIApp]:
        return None

    def close(self) -> None:
        return None
