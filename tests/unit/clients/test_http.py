"""
Tests for the outbound HTTP client and its access-log transport.
"""

import httpx
import pytest
from opentelemetry.trace import SpanKind, StatusCode


def build_client(handler, log_capture, tracer_provider=None, **options):
    from httpobs.clients.http import AccessLogTransport

    transport = AccessLogTransport(
        transport=httpx.MockTransport(handler),
        logger=log_capture.logger,
        tracer_provider=tracer_provider,
        **options,
    )
    return httpx.AsyncClient(transport=transport, base_url="http://orders.local")


class TestAccessLogTransport:
    @pytest.mark.asyncio
    async def test_outgoing_request_logged(self, log_capture):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, json={"ok": True})

        async with build_client(handler, log_capture) as client:
            response = await client.post("/orders?dry=1", json={"id": 1})

        assert response.status_code == 201
        assert response.json() == {"ok": True}
        records = log_capture.events("outgoing request log")
        assert len(records) == 1
        record = records[0]
        assert record["method"] == "POST"
        assert record["host"] == "orders.local"
        assert record["path"] == "/orders?dry=1"
        assert record["request"]["body"] == {"id": 1}
        assert record["response"]["status_code"] == 201
        assert record["response"]["body"] == {"ok": True}
        assert record["elapsed_time_ns"] > 0

    @pytest.mark.asyncio
    async def test_traceparent_injected_and_client_span_recorded(
        self, log_capture, tracer_provider, span_exporter
    ):
        seen_headers = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen_headers.update(request.headers)
            return httpx.Response(200, text="pong")

        async with build_client(handler, log_capture, tracer_provider) as client:
            await client.get("/ping")

        span = span_exporter.get_finished_spans()[0]
        assert span.name == "GET /ping"
        assert span.kind == SpanKind.CLIENT
        assert span.attributes["http.status_code"] == 200
        traceparent = seen_headers["traceparent"].split("-")
        assert traceparent[1] == format(span.context.trace_id, "032x")
        assert traceparent[2] == format(span.context.span_id, "016x")
        assert log_capture.entries[0]["response"]["body"] == "pong"

    @pytest.mark.asyncio
    async def test_transport_error_logged_and_raised(
        self, log_capture, tracer_provider, span_exporter
    ):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with build_client(handler, log_capture, tracer_provider) as client:
            with pytest.raises(httpx.ConnectError):
                await client.get("/ping")

        record = log_capture.entries[0]
        assert record["error"] == "failed to send request: connection refused"
        assert "response" not in record
        assert span_exporter.get_finished_spans()[0].status.status_code == StatusCode.ERROR

    @pytest.mark.asyncio
    async def test_non_httpx_transport_error_marks_span(
        self, log_capture, tracer_provider, span_exporter
    ):
        from httpobs.clients.http import AccessLogTransport

        class BrokenTransport(httpx.AsyncBaseTransport):
            async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
                raise OSError("socket closed")

        transport = AccessLogTransport(
            transport=BrokenTransport(),
            logger=log_capture.logger,
            tracer_provider=tracer_provider,
        )
        async with httpx.AsyncClient(transport=transport, base_url="http://orders.local") as client:
            with pytest.raises(OSError):
                await client.get("/ping")

        span = span_exporter.get_finished_spans()[0]
        assert span.status.status_code == StatusCode.ERROR
        assert span.events[0].name == "exception"
        assert log_capture.entries[0]["error"] == "failed to send request: socket closed"

    @pytest.mark.asyncio
    async def test_large_response_body_placeholder(self, log_capture):
        from httpobs.middleware.access_log import TRUNCATED_BODY_PLACEHOLDER

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"x" * 10)

        async with build_client(handler, log_capture, max_body_bytes=10) as client:
            response = await client.get("/big")

        assert response.content == b"x" * 10
        assert log_capture.entries[0]["response"]["body"] == TRUNCATED_BODY_PLACEHOLDER

    @pytest.mark.asyncio
    async def test_authorization_redacted(self, log_capture):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(204)

        async with build_client(handler, log_capture) as client:
            await client.get("/ping", headers={"Authorization": "Bearer secret"})

        assert log_capture.entries[0]["request"]["header_map"]["authorization"] == "[REDACTED]"


class TestCreateHttpClient:
    @pytest.mark.asyncio
    async def test_factory_configuration(self):
        from httpobs.clients.http import (
            DEFAULT_TIMEOUT_SECONDS,
            AccessLogTransport,
            create_http_client,
        )

        client = create_http_client(base_url="http://orders.local", headers={"X-Team": "shop"})
        async with client:
            assert client.base_url.host == "orders.local"
            assert client.timeout.read == DEFAULT_TIMEOUT_SECONDS
            assert client.headers["x-team"] == "shop"
            assert client.headers["user-agent"] == "httpobs/1.0"
            assert isinstance(client._transport, AccessLogTransport)

    def test_custom_timeout(self):
        from httpobs.clients.http import create_http_client

        client = create_http_client(timeout_seconds=2.5)

        assert client.timeout.connect == 2.5
