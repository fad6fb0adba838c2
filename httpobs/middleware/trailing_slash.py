"""Trailing-slash normalization: "/orders/" is routed as "/orders"."""

from typing import Any, Callable


def strip_trailing_slash(path: str) -> str:
    """Remove trailing slashes, keeping "/" for the root."""
    stripped = path.rstrip("/")
    return stripped or "/"


class TrailingSlashMiddleware:
    """
    ASGI middleware rewriting path and raw_path without a trailing slash.

    Applies to http and websocket scopes; the scope is copied, not mutated.
    """

    def __init__(self, app: Callable[..., Any]) -> None:
        self.app = app

    async def __call__(
        self,
        scope: dict[str, Any],
        receive: Callable[..., Any],
        send: Callable[..., Any],
    ) -> None:
        if scope.get("type") not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        path = scope.get("path")
        if not path or path == "/" or not path.endswith("/"):
            await self.app(scope, receive, send)
            return

        scope = dict(scope)
        scope["path"] = strip_trailing_slash(path)
        raw_path = scope.get("raw_path")
        if raw_path:
            scope["raw_path"] = raw_path.rstrip(b"/") or b"/"
        await self.app(scope, receive, send)
