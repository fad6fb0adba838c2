"""
Structured Logging Module

This module provides structured JSON logging with trace-context correlation.

Reference Documents:
- structlog processor chains: level, timestamp, context, renderer
- OpenTelemetry span context: trace_id / span_id on every event

Pattern: Structured logging for observability
Pattern: Singleton configuration (configure once at startup)
Anti-Pattern Avoided: Uses Optional[T] with explicit None defaults
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

import structlog
from opentelemetry import trace
from structlog.types import EventDict, Processor


# =============================================================================
# Configuration State Flag
# =============================================================================

_configured: bool = False


# =============================================================================
# Custom Processors
# =============================================================================


def add_trace_context(
    logger: logging.Logger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Add trace_id and span_id of the current OpenTelemetry span.

    Nothing is added when no valid span is active.
    """
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        event_dict.setdefault("trace_id", format(span_context.trace_id, "032x"))
        event_dict.setdefault("span_id", format(span_context.span_id, "016x"))
    return event_dict


def add_timestamp(
    logger: logging.Logger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Add ISO 8601 timestamp to log event.

    Args:
        logger: The logger instance (unused but required by structlog interface)
        _method_name: The log method name (unused but required by structlog interface)
        event_dict: The event dictionary to process
    """
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def rename_level(
    logger: logging.Logger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Rename log_level to level for cleaner output.

    Args:
        logger: The logger instance (unused but required by structlog interface)
        _method_name: The log method name (unused but required by structlog interface)
        event_dict: The event dictionary to process
    """
    if "log_level" in event_dict:
        event_dict["level"] = event_dict.pop("log_level")
    return event_dict


def _drop_event(
    logger: logging.Logger, _method_name: str, event_dict: EventDict
) -> EventDict:
    raise structlog.DropEvent


# =============================================================================
# Singleton Configuration
# =============================================================================


def build_processors(json_output: bool = True) -> list[Processor]:
    """
    Build the processor chain shared by every configured logger.

    Args:
        json_output: Render JSON lines when True, colored console output otherwise

    Returns:
        Ordered list of structlog processors
    """
    renderer: Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    return [
        structlog.stdlib.add_log_level,
        add_timestamp,
        add_trace_context,
        rename_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def configure_logging(
    level: str = "INFO",
    stream: Optional[TextIO] = None,
    force: bool = False,
    json_output: bool = True,
) -> None:
    """
    Configure structlog for the application.

    This should be called once at application startup. Subsequent calls
    are no-ops to avoid reconfiguration overhead, unless force=True.

    Args:
        level: Default log level (DEBUG, INFO, WARNING, ERROR)
        stream: Output stream (default: sys.stdout)
        force: Force reconfiguration (for testing only)
        json_output: JSON renderer when True, console renderer otherwise

    Example:
        >>> configure_logging(level="DEBUG")
        >>> logger = get_logger("my_module")
    """
    global _configured

    if _configured and not force:
        return

    structlog.configure(
        processors=build_processors(json_output=json_output),
        wrapper_class=structlog.make_filtering_bound_logger(
            _level_to_int(level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stdout),
        cache_logger_on_first_use=False,
    )

    _configured = True


def reset_logging() -> None:
    """
    Reset logging configuration state.

    WARNING: This should only be used in tests.
    """
    global _configured
    _configured = False
    structlog.reset_defaults()


# =============================================================================
# Logger Factories
# =============================================================================


def get_logger(
    name: str,
    stream: Optional[TextIO] = None,
    level: str = "INFO",
) -> structlog.BoundLogger:
    """
    Get a configured structured logger.

    Args:
        name: Logger name (typically module name)
        stream: Output stream (default: sys.stdout) - used for initial config
        level: Log level (DEBUG, INFO, WARNING, ERROR) - used for initial config

    Returns:
        Configured structlog BoundLogger

    Example:
        >>> logger = get_logger("my_module")
        >>> logger.info("user logged in", user_id="123")
    """
    configure_logging(level=level, stream=stream)
    return structlog.get_logger().bind(logger=name)


def get_noop_logger() -> structlog.BoundLogger:
    """
    Get a logger that discards every event.

    Used as the default for components constructed without a logger.
    """
    return structlog.wrap_logger(
        structlog.ReturnLogger(),
        processors=[_drop_event],
        wrapper_class=structlog.BoundLogger,
    )


def _level_to_int(level: str) -> int:
    """Convert level string to logging int."""
    levels = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    return levels.get(level.upper(), logging.INFO)


# =============================================================================
# Logger as a File-like Sink
# =============================================================================


class LoggerWriter:
    """
    File-like adapter that turns writes into debug log events.

    Each write is parsed as JSON when possible and attached as ``data``;
    text that is not JSON is attached verbatim. Used as the output stream of
    the console span exporter so spans go through the structured logger.

    Example:
        >>> writer = LoggerWriter(get_logger("spans"))
        >>> writer.write('{"name": "GET /"}')
    """

    def __init__(self, logger: Any, event: str = "span exported") -> None:
        self._logger = logger
        self._event = event

    def write(self, text: str) -> int:
        stripped = text.strip()
        if not stripped:
            return len(text)

        data: Any
        try:
            data = json.loads(stripped)
        except ValueError:
            data = stripped

        self._logger.debug(self._event, data=data)
        return len(text)

    def flush(self) -> None:
        """Nothing is buffered."""
