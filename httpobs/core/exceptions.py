"""
Custom exceptions for httpobs.

This module provides the exception hierarchy shared by the middleware chain,
the metric registries and the exporter selector. All exceptions inherit from
ObservabilityError and carry an error code for consistent logging.

Reference:
- Constructors fail fast with ConfigurationError (startup never proceeds
  with a half-built chain)
- Capture failures are collected, never raised mid-response
"""

from enum import Enum
from typing import Any, Iterator, Optional


# =============================================================================
# Error Codes Enum
# =============================================================================


class ErrorCode(str, Enum):
    """
    Error codes for httpobs exceptions.

    These codes provide a consistent way to identify error types in logs
    and in span events.
    """

    OBSERVABILITY_ERROR = "OBSERVABILITY_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    LABEL_MISMATCH = "LABEL_MISMATCH"
    CAPTURE_ERROR = "CAPTURE_ERROR"
    SHUTDOWN_ERROR = "SHUTDOWN_ERROR"


# =============================================================================
# Base Exception
# =============================================================================


class ObservabilityError(Exception):
    """
    Base exception for all httpobs errors.

    Attributes:
        message: Human-readable error message.
        error_code: Machine-readable error code from ErrorCode enum.
    """

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.OBSERVABILITY_ERROR,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            **kwargs: Additional attributes to set on the exception.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code

        for key, value in kwargs.items():
            setattr(self, key, value)


# =============================================================================
# ConfigurationError
# =============================================================================


class ConfigurationError(ObservabilityError):
    """
    Exception for invalid wiring detected at construction time.

    Raised for a missing wrapped app or metric registry, a metric without an
    exposition handler, an unknown span exporter name or an empty exporter
    endpoint.
    """

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.CONFIGURATION_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code=error_code, **kwargs)


# =============================================================================
# LabelMismatchError
# =============================================================================


class LabelMismatchError(ObservabilityError):
    """
    Exception for a metric name reused with a different label-name set.

    Attributes:
        metric_name: Fully qualified metric name.
        kind: Instrument kind ("counter", "gauge" or "timer").
        registered_labels: Label names the metric was first registered with.
        requested_labels: Label names of the rejected lookup.
    """

    def __init__(
        self,
        metric_name: str,
        kind: str,
        registered_labels: tuple[str, ...],
        requested_labels: tuple[str, ...],
        error_code: str = ErrorCode.LABEL_MISMATCH,
        **kwargs: Any,
    ) -> None:
        message = (
            f"{kind} vector name '{metric_name}' already registered: "
            f"mismatch labels (registered={list(registered_labels)}, "
            f"requested={list(requested_labels)})"
        )
        super().__init__(message, error_code=error_code, **kwargs)
        self.metric_name = metric_name
        self.kind = kind
        self.registered_labels = registered_labels
        self.requested_labels = requested_labels


# =============================================================================
# CaptureError
# =============================================================================


class CaptureError(ObservabilityError):
    """
    Exception for a transient I/O failure while capturing a request/response.

    Attributes:
        context: Short description of the failed step.
        cause: The underlying exception.
    """

    def __init__(
        self,
        context: str,
        cause: BaseException,
        error_code: str = ErrorCode.CAPTURE_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(f"{context}: {cause}", error_code=error_code, **kwargs)
        self.context = context
        self.cause = cause


# =============================================================================
# ShutdownError
# =============================================================================


class ShutdownError(ObservabilityError):
    """
    Exception aggregating failures from closing several resources.

    Attributes:
        errors: The individual failures, in the order they happened.
    """

    def __init__(
        self,
        errors: list[BaseException],
        error_code: str = ErrorCode.SHUTDOWN_ERROR,
        **kwargs: Any,
    ) -> None:
        message = "; ".join(str(error) for error in errors)
        super().__init__(message, error_code=error_code, **kwargs)
        self.errors = list(errors)


# =============================================================================
# Error Accumulator
# =============================================================================


class ErrorList:
    """
    Ordered collection of CaptureError values gathered during one request.

    Example:
        >>> errors = ErrorList()
        >>> errors.append("error copy request body", OSError("reset"))
        >>> str(errors)
        'error copy request body: reset'
    """

    def __init__(self) -> None:
        self._errors: list[CaptureError] = []

    def append(self, context: str, cause: BaseException) -> CaptureError:
        """Record a failure and return the wrapping CaptureError."""
        error = CaptureError(context, cause)
        self._errors.append(error)
        return error

    def __bool__(self) -> bool:
        return bool(self._errors)

    def __len__(self) -> int:
        return len(self._errors)

    def __iter__(self) -> Iterator[CaptureError]:
        return iter(self._errors)

    def __str__(self) -> str:
        return "; ".join(str(error) for error in self._errors)

    def message(self) -> Optional[str]:
        """Return the joined message, or None if nothing failed."""
        return str(self) if self._errors else None
