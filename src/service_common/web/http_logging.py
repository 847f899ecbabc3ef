"""
HTTP request/response logging middleware.

Logs one entry when a request arrives and one when its response completes.
The request body is cached and replayed to the application; the response
body is captured while it streams to the client unchanged.
"""

import time
from typing import Any, Dict, List, Optional, Tuple

import structlog
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..config import HttpLoggingSettings
from ..core.masking import SensitiveDataMasker
from ..core.metrics import MetricsCollector
from ..core.path_matching import match_any, request_path
from .content_logging import (
    extract_body,
    extract_request_details,
    extract_response_details,
    format_log_message,
)

logger = structlog.get_logger(__name__)

BODY_METHODS = {"POST", "PUT", "PATCH"}

UNMATCHED_ENDPOINT = "unmatched"

_LEVELS = {
    "TRACE": "debug",
    "DEBUG": "debug",
    "INFO": "info",
    "WARN": "warning",
    "WARNING": "warning",
    "ERROR": "error",
}


def resolve_log_level(level: str) -> str:
    """structlog method name for a configured level; unknown levels log at debug."""
    return _LEVELS.get((level or "").upper(), "debug")


def route_template(scope: Scope) -> str:
    """
    Path template of the route that handled the request.

    Used as the metrics endpoint label so path parameters do not create a
    time series per value. Requests rejected before routing share one label.
    """
    route = scope.get("route")
    template = getattr(route, "path_format", None) or getattr(route, "path", None)
    return template or UNMATCHED_ENDPOINT


class HttpLoggingMiddleware:
    """Pure ASGI middleware logging requests and responses."""

    def __init__(
        self,
        app: ASGIApp,
        settings: HttpLoggingSettings,
        masker: Optional[SensitiveDataMasker] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.app = app
        self.settings = settings
        self.masker = masker
        self.metrics = metrics
        self.level = resolve_log_level(settings.log_level)

    def should_log(self, path: str) -> bool:
        if self.settings.include_patterns and not match_any(self.settings.include_patterns, path):
            return False
        if self.settings.exclude_patterns and match_any(self.settings.exclude_patterns, path):
            return False
        return True

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.settings.enabled:
            await self.app(scope, receive, send)
            return

        if not self.should_log(request_path(scope)):
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        request_body, replay_receive = await self._cache_request_body(receive)
        self._log_request(scope, request_body)

        status_code: Optional[int] = None
        response_headers: List[Tuple[bytes, bytes]] = []
        response_chunks: List[bytes] = []

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code, response_headers
            if message["type"] == "http.response.start":
                status_code = message["status"]
                response_headers = list(message.get("headers", []))
            elif message["type"] == "http.response.body" and self.settings.include_response_body:
                response_chunks.append(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, replay_receive, send_wrapper)
        finally:
            duration_seconds = time.perf_counter() - start_time
            self._log_response(
                scope,
                status_code or 500,
                response_headers,
                b"".join(response_chunks),
                duration_seconds,
            )
            if self.metrics:
                self.metrics.record_request(
                    method=scope.get("method", ""),
                    endpoint=route_template(scope),
                    status_code=status_code or 500,
                    duration_seconds=duration_seconds,
                )

    async def _cache_request_body(self, receive: Receive) -> Tuple[bytes, Receive]:
        chunks: List[bytes] = []
        pending: List[Message] = []
        more_body = True

        while more_body:
            message = await receive()
            if message["type"] != "http.request":
                # Client went away, hand the disconnect to the app
                pending.append(message)
                break
            chunks.append(message.get("body", b""))
            more_body = message.get("more_body", False)

        body = b"".join(chunks)
        body_sent = False

        async def replay_receive() -> Message:
            nonlocal body_sent
            if not body_sent:
                body_sent = True
                return {"type": "http.request", "body": body, "more_body": False}
            if pending:
                return pending.pop(0)
            return await receive()

        return body, replay_receive

    def _log_request(self, scope: Scope, body: bytes) -> None:
        try:
            details = extract_request_details(scope, self.settings)

            if self.settings.include_request_body and scope.get("method") in BODY_METHODS:
                body_text = extract_body(body, self.settings.max_body_size, self.masker)
                if body_text:
                    details["body"] = body_text

            getattr(logger, self.level)(format_log_message("HTTP Request", details), **details)
        except Exception as e:
            logger.warning(
                "Failed to log HTTP request",
                error=str(e),
                error_type=type(e).__name__,
            )

    def _log_response(
        self,
        scope: Scope,
        status_code: int,
        headers: List[Tuple[bytes, bytes]],
        body: bytes,
        duration_seconds: float,
    ) -> None:
        if self.settings.log_errors_only and status_code < 400:
            return

        try:
            details: Dict[str, Any] = extract_response_details(status_code, headers, self.settings)
            details["duration_ms"] = round(duration_seconds * 1000, 2)

            if self.settings.include_response_body:
                body_text = extract_body(body, self.settings.max_body_size, self.masker)
                if body_text:
                    details["body"] = body_text

            if status_code >= 500:
                level = "error"
            elif status_code >= 400:
                level = "warning"
            else:
                level = self.level

            getattr(logger, level)(
                format_log_message("HTTP Response", details),
                method=scope.get("method"),
                uri=scope.get("path"),
                **details,
            )
        except Exception as e:
            logger.warning(
                "Failed to log HTTP response",
                error=str(e),
                error_type=type(e).__name__,
            )
