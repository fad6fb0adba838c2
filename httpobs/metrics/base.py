"""
Metric contracts shared by every backend.

A Metric hands out named vectors; a vector binds label values and returns an
instrument. Label names are fixed per metric name for the lifetime of the
registry.

Example:
    >>> vec = metric.get_counter_vec("jobs_total", "queue", "outcome")
    >>> vec.with_values("default", "ok").incr()
"""

import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Generator, Optional

ASGIApp = Callable[..., Any]


# =============================================================================
# Instruments
# =============================================================================


class StatCounter(ABC):
    """Monotonic counter."""

    @abstractmethod
    def incr(self, count: float = 1) -> None:
        """Add a non-negative amount."""


class StatGauge(ABC):
    """Value that can go up and down."""

    @abstractmethod
    def set(self, value: float) -> None:
        """Set the gauge to an absolute value."""

    @abstractmethod
    def incr(self, value: float = 1) -> None:
        """Add to the gauge."""

    @abstractmethod
    def decr(self, value: float = 1) -> None:
        """Subtract from the gauge."""


class StatTimer(ABC):
    """Duration recorder, in nanoseconds."""

    @abstractmethod
    def timing(self, delta_ns: int) -> None:
        """Record one elapsed duration in nanoseconds."""

    @contextmanager
    def time(self) -> Generator[None, None, None]:
        """
        Record the duration of the ``with`` block.

        Example:
            >>> with timer.time():
            ...     do_work()
        """
        start = time.perf_counter_ns()
        try:
            yield
        finally:
            self.timing(time.perf_counter_ns() - start)


# =============================================================================
# Vectors
# =============================================================================


class CounterVec(ABC):
    @abstractmethod
    def with_values(self, *values: str) -> StatCounter:
        """Return the counter for the given label values."""


class GaugeVec(ABC):
    @abstractmethod
    def with_values(self, *values: str) -> StatGauge:
        """Return the gauge for the given label values."""


class TimerVec(ABC):
    @abstractmethod
    def with_values(self, *values: str) -> StatTimer:
        """Return the timer for the given label values."""


# =============================================================================
# Metric Registry
# =============================================================================


class Metric(ABC):
    """
    Registry facade handing out label-consistent vectors.

    Implementations must return the same underlying series for repeated
    lookups of one name, and reject a lookup whose label-name set differs
    from the first registration.
    """

    @abstractmethod
    def get_counter_vec(self, name: str, *label_names: str) -> CounterVec:
        """Get or create a counter vector."""

    @abstractmethod
    def get_gauge_vec(self, name: str, *label_names: str) -> GaugeVec:
        """Get or create a gauge vector."""

    @abstractmethod
    def get_timer_vec(self, name: str, *label_names: str) -> TimerVec:
        """Get or create a timer vector."""

    @abstractmethod
    def exposition_app(self) -> Optional[ASGIApp]:
        """ASGI app serving this registry, or None if the backend has none."""

    @abstractmethod
    def close(self) -> None:
        """Release backend resources."""
