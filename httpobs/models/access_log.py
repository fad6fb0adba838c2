"""
Access-log record models.

Field names are the emitted log keys. Unset (None) fields are omitted from
the record rather than written as null.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class HTTPData(BaseModel):
    """One side of an exchange: status (responses only), headers, body."""

    status_code: Optional[int] = None
    header_map: dict[str, str] = Field(default_factory=dict)
    body: Any = None


class AccessLogEntry(BaseModel):
    """
    One access-log record.

    Attributes:
        method: HTTP method
        host: Host header, or the server address when absent
        path: Request path including the query string
        request: Captured request headers and body
        response: Relayed response status, headers and body (omitted when
            nothing was relayed)
        error: Joined capture/handler errors
        elapsed_time_ns: Wall time from entry to after the response was relayed
    """

    method: Optional[str] = None
    host: Optional[str] = None
    path: Optional[str] = None
    request: Optional[HTTPData] = None
    response: Optional[HTTPData] = None
    error: Optional[str] = None
    elapsed_time_ns: int = 0

    def to_log_fields(self) -> dict[str, Any]:
        """Render as structlog keyword arguments."""
        return self.model_dump(exclude_none=True)
