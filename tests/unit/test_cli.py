"""
Tests for the httpobs command-line entry point.
"""

import json

import httpx
import pytest


@pytest.fixture(autouse=True)
def reset_structlog():
    from httpobs.observability.logging import reset_logging

    yield
    reset_logging()


def mock_client_factory(handler):
    """Replacement for create_http_client backed by httpx.MockTransport."""

    def factory(**kwargs):
        from httpobs.clients.http import AccessLogTransport

        transport = AccessLogTransport(
            transport=httpx.MockTransport(handler), logger=kwargs.get("logger")
        )
        return httpx.AsyncClient(transport=transport)

    return factory


class TestParser:
    def test_ping_defaults(self):
        from httpobs.cli import build_parser

        args = build_parser().parse_args(["ping"])

        assert args.command == "ping"
        assert args.url == "http://localhost:8080/ping"
        assert args.timeout == 5.0

    def test_command_required(self):
        from httpobs.cli import build_parser

        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestPingCommand:
    def test_success_prints_payload(self, monkeypatch, capsys):
        from httpobs import cli

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/ping"
            return httpx.Response(200, json={"commit_hash": "abc1234"})

        monkeypatch.setattr(cli, "create_http_client", mock_client_factory(handler))

        exit_code = cli.main(["ping", "--url", "http://svc.local/ping"])

        assert exit_code == 0
        assert json.loads(capsys.readouterr().out) == {"commit_hash": "abc1234"}

    def test_error_status_exits_nonzero(self, monkeypatch, capsys):
        from httpobs import cli

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        monkeypatch.setattr(cli, "create_http_client", mock_client_factory(handler))

        exit_code = cli.main(["ping", "--url", "http://svc.local/ping"])

        assert exit_code == 1
        assert json.loads(capsys.readouterr().out) == "unavailable"

    def test_connection_error_logged(self, monkeypatch, capsys):
        from httpobs import cli

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        monkeypatch.setattr(cli, "create_http_client", mock_client_factory(handler))

        exit_code = cli.main(["ping", "--url", "http://svc.local/ping"])

        captured = capsys.readouterr()
        assert exit_code == 1
        assert captured.out == ""
        assert "ping failed" in captured.err
