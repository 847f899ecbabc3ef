"""
Correlation ID propagation.

Each request gets an identifier, taken from the X-Correlation-ID header when
the caller sends one, that is bound to every log line written while the
request is handled and echoed back in the response headers.
"""

import uuid
from contextvars import ContextVar
from typing import Optional

import structlog
from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

CORRELATION_ID_HEADER = "X-Correlation-ID"
CORRELATION_ID_KEY = "correlation_id"

_correlation_id: ContextVar[Optional[str]] = ContextVar(CORRELATION_ID_KEY, default=None)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def generate_correlation_id() -> str:
    return f"req_{uuid.uuid4().hex[:16]}"


class CorrelationIdMiddleware:
    """Pure ASGI middleware binding a correlation ID to the request context."""

    def __init__(self, app: ASGIApp, header_name: str = CORRELATION_ID_HEADER) -> None:
        self.app = app
        self.header_name = header_name

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = Headers(scope=scope).get(self.header_name)
        correlation_id = incoming.strip() if incoming and incoming.strip() else generate_correlation_id()

        # Exception handlers outside this middleware read it from request.state
        scope.setdefault("state", {})[CORRELATION_ID_KEY] = correlation_id

        context_token = _correlation_id.set(correlation_id)
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        async def send_with_correlation_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers[self.header_name] = correlation_id
            await send(message)

        try:
            await self.app(scope, receive, send_with_correlation_id)
        finally:
            structlog.contextvars.unbind_contextvars(CORRELATION_ID_KEY)
            _correlation_id.reset(context_token)
