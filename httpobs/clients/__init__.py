"""Outbound HTTP client with trace propagation and access logging."""

from httpobs.clients.http import AccessLogTransport, create_http_client

__all__ = ["AccessLogTransport", "create_http_client"]
