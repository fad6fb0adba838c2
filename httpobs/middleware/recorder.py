"""
Request/response capture helpers shared by the middleware.

- read_request_body(): drain the request stream and hand back an equivalent
  receive callable for the wrapped app
- ResponseRecorder: in-memory ASGI send sink that can replay what it saw
- flatten_headers() / decode_body(): log-friendly renderings
"""

import json
from typing import Any, Awaitable, Callable, Iterable, Optional

from starlette.datastructures import MutableHeaders

from httpobs.core.exceptions import ErrorList

Message = dict[str, Any]
Receive = Callable[[], Awaitable[Message]]
Send = Callable[[Message], Awaitable[None]]


# =============================================================================
# Rendering
# =============================================================================


def flatten_headers(raw_headers: Iterable[tuple[bytes, bytes]]) -> dict[str, str]:
    """
    Collapse raw ASGI headers into one string per name.

    Repeated headers are joined with a single space, in arrival order.

    Example:
        >>> flatten_headers([(b"accept", b"a/b"), (b"accept", b"c/d")])
        {'accept': 'a/b c/d'}
    """
    flat: dict[str, str] = {}
    for key, value in raw_headers:
        name = key.decode("latin-1").lower()
        text = value.decode("latin-1")
        flat[name] = f"{flat[name]} {text}" if name in flat else text
    return flat


def decode_body(body: bytes) -> Any:
    """
    Parsed JSON value when body is JSON, the raw text otherwise, None if empty.
    """
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return body.decode("utf-8", errors="replace")


# =============================================================================
# Request Capture
# =============================================================================


async def read_request_body(
    receive: Optional[Receive], errors: ErrorList
) -> tuple[bytes, Receive]:
    """
    Read the whole request body and return it with a replaying receive.

    The replaying receive yields the buffered body as one http.request
    message, then any message consumed past the body (e.g. http.disconnect),
    then defers to the original receive. A read failure is recorded in
    ``errors`` and the body is treated as empty.

    Args:
        receive: Original ASGI receive callable (may be None)
        errors: Accumulator for capture failures

    Returns:
        (body bytes, receive callable for the wrapped app)
    """
    chunks: list[bytes] = []
    pending: list[Message] = []

    if receive is not None:
        try:
            while True:
                message = await receive()
                if message["type"] != "http.request":
                    pending.append(message)
                    break
                chunks.append(message.get("body", b""))
                if not message.get("more_body", False):
                    break
        except Exception as e:
            errors.append("error copy request body", e)
            chunks = []

    body = b"".join(chunks)
    body_sent = False

    async def replay_receive() -> Message:
        nonlocal body_sent
        if not body_sent:
            body_sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        if pending:
            return pending.pop(0)
        if receive is None:
            return {"type": "http.disconnect"}
        return await receive()

    return body, replay_receive


# =============================================================================
# Response Capture
# =============================================================================


class ResponseRecorder:
    """
    ASGI send sink that buffers one response.

    Attributes:
        start_message: The recorded http.response.start message, if any
        body: Concatenated http.response.body payloads
        extra_messages: Messages after the body (e.g. trailers), in order
    """

    def __init__(self) -> None:
        self.start_message: Optional[Message] = None
        self.body_chunks: list[bytes] = []
        self.extra_messages: list[Message] = []

    async def send(self, message: Message) -> None:
        message_type = message["type"]
        if message_type == "http.response.start":
            self.start_message = dict(message)
            self.start_message["headers"] = list(message.get("headers", []))
        elif message_type == "http.response.body":
            self.body_chunks.append(message.get("body", b""))
        else:
            self.extra_messages.append(message)

    @property
    def started(self) -> bool:
        return self.start_message is not None

    @property
    def status_code(self) -> Optional[int]:
        if self.start_message is None:
            return None
        return self.start_message.get("status", 200)

    @property
    def body(self) -> bytes:
        return b"".join(self.body_chunks)

    @property
    def raw_headers(self) -> list[tuple[bytes, bytes]]:
        if self.start_message is None:
            return []
        return list(self.start_message["headers"])

    async def replay(
        self,
        send: Send,
        extra_headers: Optional[dict[str, str]] = None,
    ) -> list[tuple[bytes, bytes]]:
        """
        Send the recorded response to ``send``.

        Recorded headers are copied verbatim, repeated names included;
        ``extra_headers`` replace any recorded value for the same name.
        Nothing is sent when no response was started.

        Returns:
            The raw headers actually sent
        """
        if self.start_message is None:
            return []

        headers = MutableHeaders(raw=list(self.start_message["headers"]))
        for key, value in (extra_headers or {}).items():
            headers[key] = value

        start = dict(self.start_message)
        start["headers"] = headers.raw
        await send(start)
        await send({"type": "http.response.body", "body": self.body, "more_body": False})
        for message in self.extra_messages:
            await send(message)
        return list(headers.raw)
