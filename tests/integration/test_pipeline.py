"""
Integration tests for the assembled observability pipeline.

A FastAPI application is wrapped in the default middleware chain and driven
through TestClient. Spans, log records and Prometheus samples are captured
in memory.
"""

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.testclient import TestClient

from httpobs.core.config import Settings
from httpobs.metrics import PrometheusMetric
from httpobs.middleware.access_log import TRUNCATED_BODY_PLACEHOLDER
from httpobs.middleware.chain import build_default_chain
from httpobs.observability.manager import Observability

pytestmark = pytest.mark.integration

INBOUND_TRACE_ID = "4bf92f3577b34da6a3ce929d0e0e4736"
INBOUND_TRACEPARENT = f"00-{INBOUND_TRACE_ID}-00f067aa0ba902b7-01"


def orders_app() -> FastAPI:
    app = FastAPI()

    @app.post("/orders", status_code=201)
    async def create_order(request: Request) -> dict:
        await request.json()
        return {"ok": True}

    @app.get("/report")
    async def report() -> PlainTextResponse:
        return PlainTextResponse("r" * 64)

    @app.get("/teapot")
    async def teapot() -> JSONResponse:
        return JSONResponse({"brewing": False}, status_code=418)

    return app


@pytest.fixture
def observability(log_capture, tracer_provider, registry) -> Observability:
    return Observability(
        logger=log_capture.logger,
        tracer_provider=tracer_provider,
        metric=PrometheusMetric(registry=registry),
    )


@pytest.fixture
def client(observability) -> TestClient:
    settings = Settings(access_log_max_body_bytes=32)
    return TestClient(build_default_chain(observability, settings).wrap(orders_app()))


def request_count(registry, code: str, method: str, path: str):
    return registry.get_sample_value(
        "http_requests_total", {"code": code, "method": method, "path": path}
    )


# =============================================================================
# Request flow
# =============================================================================


class TestRequestFlow:
    def test_request_logged_counted_and_traced(self, client, log_capture, registry, span_exporter):
        response = client.post("/orders", json={"id": 1})

        assert response.status_code == 201
        assert response.json() == {"ok": True}

        records = log_capture.events("incoming request log")
        assert len(records) == 1
        record = records[0]
        assert record["method"] == "POST"
        assert record["host"] == "testserver"
        assert record["path"] == "/orders"
        assert record["request"]["body"] == {"id": 1}
        assert record["response"]["status_code"] == 201
        assert record["response"]["body"] == {"ok": True}
        assert "error" not in record

        assert request_count(registry, "201", "POST", "/orders") == 1.0

        span_names = {span.name for span in span_exporter.get_finished_spans()}
        assert {"POST /orders", "POST /orders [access log]"} <= span_names

    def test_trailing_slash_normalized_everywhere(self, client, log_capture, registry, span_exporter):
        response = client.post("/orders/", json={"id": 2})

        assert response.status_code == 201
        assert log_capture.events("incoming request log")[0]["path"] == "/orders"
        assert request_count(registry, "201", "POST", "/orders") == 1.0
        assert "POST /orders" in {span.name for span in span_exporter.get_finished_spans()}

    def test_non_2xx_status_recorded(self, client, log_capture, registry):
        response = client.get("/teapot")

        assert response.status_code == 418
        assert log_capture.entries[0]["response"]["status_code"] == 418
        assert request_count(registry, "418", "GET", "/teapot") == 1.0

    def test_large_response_logged_as_placeholder(self, client, log_capture):
        response = client.get("/report")

        assert response.text == "r" * 64
        assert log_capture.entries[0]["response"]["body"] == TRUNCATED_BODY_PLACEHOLDER


# =============================================================================
# Trace propagation
# =============================================================================


class TestTracePropagation:
    def test_access_log_span_nested_under_server_span(self, client, span_exporter):
        client.post("/orders", json={"id": 1})

        spans = {span.name: span for span in span_exporter.get_finished_spans()}
        server = spans["POST /orders"]
        access_log = spans["POST /orders [access log]"]
        assert access_log.parent.span_id == server.context.span_id
        assert spans["capture request"].parent.span_id == access_log.context.span_id
        assert spans["capture response"].parent.span_id == access_log.context.span_id

    def test_response_traceparent_names_server_span(self, client, span_exporter):
        response = client.post("/orders", json={"id": 1})

        server = next(
            span for span in span_exporter.get_finished_spans() if span.name == "POST /orders"
        )
        _, trace_id, span_id, _ = response.headers["traceparent"].split("-")
        assert trace_id == format(server.context.trace_id, "032x")
        assert span_id == format(server.context.span_id, "016x")

    def test_inbound_trace_continued(self, client, log_capture, span_exporter):
        response = client.post(
            "/orders", json={"id": 1}, headers={"traceparent": INBOUND_TRACEPARENT}
        )

        trace_ids = {
            format(span.context.trace_id, "032x") for span in span_exporter.get_finished_spans()
        }
        assert trace_ids == {INBOUND_TRACE_ID}
        assert response.headers["traceparent"].split("-")[1] == INBOUND_TRACE_ID
        assert log_capture.entries[0]["trace_id"] == INBOUND_TRACE_ID


# =============================================================================
# Metrics exposition
# =============================================================================


class TestExposition:
    def test_metrics_endpoint_not_logged_or_counted(self, client, log_capture, span_exporter):
        client.post("/orders", json={"id": 1})
        log_capture.capture.entries.clear()
        span_exporter.clear()

        response = client.get("/metrics")

        assert response.status_code == 200
        assert 'http_requests_total{code="201",method="POST",path="/orders"} 1.0' in response.text
        assert 'path="/metrics"' not in response.text
        assert log_capture.entries == []
        assert span_exporter.get_finished_spans() == ()


# =============================================================================
# Application lifecycle
# =============================================================================


class TestApplicationLifecycle:
    def test_ping_through_full_application(self, observability, log_capture):
        from httpobs.main import create_app

        settings = Settings(build_commit_id="abc1234")
        with TestClient(create_app(settings, observability)) as client:
            response = client.get("/ping/")

        assert response.status_code == 200
        assert response.json()["commit_hash"] == "abc1234"
        assert log_capture.events("incoming request log")[0]["path"] == "/ping"

    def test_lifespan_installs_and_releases_observability(self, observability, log_capture):
        from httpobs.main import create_app
        from httpobs.observability.manager import get_observability

        with TestClient(create_app(Settings(), observability)):
            assert get_observability() is observability
            assert len(log_capture.events("service starting")) == 1

        assert len(log_capture.events("service shutting down")) == 1
        with pytest.raises(RuntimeError):
            get_observability()
