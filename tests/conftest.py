"""
Pytest configuration for the httpobs test suite.

This configuration sets up:
- Test markers for categorization
- An in-memory span exporter and tracer provider
- A structlog logger capturing events as dicts
- Private Prometheus registries
- Minimal ASGI apps and ASGI message helpers
"""

import sys
from pathlib import Path
from typing import Any

import pytest
import structlog
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from prometheus_client import CollectorRegistry
from structlog.testing import LogCapture

# Add project root to Python path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from httpobs.observability.logging import add_trace_context  # noqa: E402


# =============================================================================
# Test Markers
# =============================================================================


def pytest_configure(config):
    """
    Register custom markers for test categorization.

    - unit: Tests for individual components
    - integration: Tests for the assembled middleware chain
    """
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Tests for the assembled pipeline")


# =============================================================================
# Tracing Fixtures
# =============================================================================


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    """In-memory exporter collecting finished spans."""
    return InMemorySpanExporter()


@pytest.fixture
def tracer_provider(span_exporter: InMemorySpanExporter) -> TracerProvider:
    """
    Tracer provider exporting synchronously to span_exporter.

    Not installed globally; pass it to the component under test.
    """
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    yield provider
    provider.shutdown()


# =============================================================================
# Logging Fixtures
# =============================================================================


class CapturingLogger:
    """Pairs a structlog bound logger with the list of events it produced."""

    def __init__(self) -> None:
        self.capture = LogCapture()
        self.logger = structlog.wrap_logger(
            structlog.ReturnLogger(),
            processors=[add_trace_context, self.capture],
            wrapper_class=structlog.BoundLogger,
        )

    @property
    def entries(self) -> list[dict[str, Any]]:
        return self.capture.entries

    def events(self, name: str) -> list[dict[str, Any]]:
        return [entry for entry in self.capture.entries if entry["event"] == name]


@pytest.fixture
def log_capture() -> CapturingLogger:
    """structlog logger whose events are kept in memory."""
    return CapturingLogger()


# =============================================================================
# Metrics Fixtures
# =============================================================================


@pytest.fixture
def registry() -> CollectorRegistry:
    """Private Prometheus registry."""
    return CollectorRegistry(auto_describe=True)


# =============================================================================
# ASGI Helpers
# =============================================================================


def http_scope(
    method: str = "GET",
    path: str = "/",
    headers: Any = None,
    query_string: bytes = b"",
) -> dict[str, Any]:
    """Build a minimal HTTP connection scope."""
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("latin-1"),
        "query_string": query_string,
        "headers": list(headers or []),
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }


def make_receive(*chunks: bytes):
    """Receive callable yielding the given body chunks, then http.disconnect."""
    messages = [
        {"type": "http.request", "body": chunk, "more_body": index < len(chunks) - 1}
        for index, chunk in enumerate(chunks or (b"",))
    ]

    async def receive() -> dict[str, Any]:
        if messages:
            return messages.pop(0)
        return {"type": "http.disconnect"}

    return receive


class SendCollector:
    """ASGI send callable recording every message."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []

    async def __call__(self, message: dict[str, Any]) -> None:
        self.messages.append(message)

    @property
    def start(self) -> dict[str, Any]:
        return next(m for m in self.messages if m["type"] == "http.response.start")

    @property
    def status(self) -> int:
        return self.start["status"]

    @property
    def headers(self) -> list[tuple[bytes, bytes]]:
        return list(self.start.get("headers", []))

    def header(self, name: str) -> Any:
        wanted = name.lower().encode("latin-1")
        for key, value in self.headers:
            if key.lower() == wanted:
                return value.decode("latin-1")
        return None

    @property
    def body(self) -> bytes:
        return b"".join(
            m.get("body", b"") for m in self.messages if m["type"] == "http.response.body"
        )


def json_app(status: int = 200, body: bytes = b'{"ok":true}', headers: Any = None):
    """ASGI app that drains the request and answers with a fixed response."""
    response_headers = [(b"content-type", b"application/json")] + list(headers or [])

    async def app(scope: dict, receive: Any, send: Any) -> None:
        more_body = True
        while more_body:
            message = await receive()
            more_body = message.get("more_body", False)
        await send({"type": "http.response.start", "status": status, "headers": response_headers})
        await send({"type": "http.response.body", "body": body})

    return app


@pytest.fixture
def send_collector() -> SendCollector:
    return SendCollector()
