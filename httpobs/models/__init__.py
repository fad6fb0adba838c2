"""Pydantic models for access-log records."""

from httpobs.models.access_log import AccessLogEntry, HTTPData

__all__ = ["AccessLogEntry", "HTTPData"]
