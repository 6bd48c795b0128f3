"""Request body size limit for image payloads.

``/save-image`` receives whole images as base64 data URIs inside JSON, so
bodies are legitimately large (a 1024x1024 PNG is several megabytes once
encoded) but still need a ceiling. The limit is checked against the declared
Content-Length up front and against the bytes actually received, which also
covers chunked uploads that declare no length.
"""

import json
from typing import Optional

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from imagegate.app.core.logging import get_log_context, get_logger

logger = get_logger(__name__)

DEFAULT_MAX_BODY_SIZE = 50 * 1024 * 1024


class PayloadTooLarge(Exception):
    """Raised from the wrapped receive channel once the limit is passed."""

    def __init__(self, received: int):
        super().__init__(received)
        self.received = received


def declared_length(scope: Scope) -> Optional[int]:
    """Content-Length from the request headers, or None if absent or invalid."""
    for name, value in scope.get("headers", []):
        if name.lower() == b"content-length":
            try:
                return int(value.decode())
            except ValueError:
                return None
    return None


class RequestSizeLimitMiddleware:
    """ASGI middleware rejecting image payloads over ``max_body_size`` bytes.

    Oversized requests get a 413 with the usual ``{"error", "message"}``
    body. Exceptions other than the size overrun propagate untouched.

    Usage:
        app.add_middleware(RequestSizeLimitMiddleware, max_body_size=50*1024*1024)
    """

    def __init__(self, app: ASGIApp, max_body_size: int = DEFAULT_MAX_BODY_SIZE):
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        length = declared_length(scope)
        if length is not None and length > self.max_body_size:
            await self._reject(scope, send, length)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_size:
                    raise PayloadTooLarge(received)
            return message

        try:
            await self.app(scope, limited_receive, send)
        except PayloadTooLarge as exc:
            await self._reject(scope, send, exc.received)

    def message_for(self, received: int) -> str:
        return (
            f"Image payload too large: received {received} bytes, "
            f"maximum allowed is {self.max_body_size} bytes"
        )

    async def _reject(self, scope: Scope, send: Send, received: int) -> None:
        logger.warning(
            f"Rejected request body of {received} bytes (limit {self.max_body_size})",
            extra=get_log_context(path=scope.get("path"), method=scope.get("method")),
        )
        body = json.dumps(
            {"error": "payload_too_large", "message": self.message_for(received)}
        ).encode()
        await send(
            {
                "type": "http.response.start",
                "status": 413,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"content-length", str(len(body)).encode()),
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})
