"""
Bearer token authentication middleware.

Requests to permitted paths pass through untouched. Every other request must
carry ``Authorization: Bearer <jwt>``; the decoded authentication is placed
in the security context for the rest of the request.
"""

from typing import Optional

import structlog
from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from ..config import SecuritySettings
from ..core.exceptions import AuthenticationError, SecurityConfigurationError
from ..core.metrics import MetricsCollector
from ..core.path_matching import match_any, request_path
from .context import clear_authentication, set_authentication
from .decoder import JwtDecoder
from .jwt import JwtAuthenticationConverter

logger = structlog.get_logger(__name__)

BEARER_PREFIX = "bearer "


class JwtAuthenticationMiddleware:
    """Pure ASGI middleware validating bearer JWTs."""

    def __init__(
        self,
        app: ASGIApp,
        decoder: JwtDecoder,
        settings: SecuritySettings,
        converter: Optional[JwtAuthenticationConverter] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.app = app
        self.decoder = decoder
        self.settings = settings
        self.converter = converter or JwtAuthenticationConverter()
        self.metrics = metrics

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = request_path(scope)
        if match_any(self.settings.permit_patterns, path):
            await self.app(scope, receive, send)
            return

        authorization = Headers(scope=scope).get("authorization")
        has_bearer_prefix = bool(authorization) and authorization.lower().startswith(BEARER_PREFIX)

        if not has_bearer_prefix:
            response = self._unauthorized(
                scope,
                AuthenticationError(),
                reason="missing_token",
                has_header=authorization is not None,
                has_bearer_prefix=False,
                token_length=0,
            )
            await response(scope, receive, send)
            return

        token = authorization[len(BEARER_PREFIX):].strip()
        try:
            jwt = await self.decoder.decode(token)
        except AuthenticationError as e:
            response = self._unauthorized(
                scope,
                e,
                reason="invalid_token",
                has_header=True,
                has_bearer_prefix=True,
                token_length=len(token),
            )
            await response(scope, receive, send)
            return
        except SecurityConfigurationError as e:
            logger.error(
                "Signing key retrieval failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            response = self._unauthorized(
                scope,
                AuthenticationError(f"An error occurred while attempting to decode the Jwt: {e}"),
                reason="key_retrieval",
                has_header=True,
                has_bearer_prefix=True,
                token_length=len(token),
            )
            await response(scope, receive, send)
            return

        authentication = self.converter.convert(jwt)
        context_token = set_authentication(authentication)
        try:
            await self.app(scope, receive, send)
        finally:
            clear_authentication(context_token)

    def _unauthorized(
        self,
        scope: Scope,
        error: AuthenticationError,
        reason: str,
        has_header: bool,
        has_bearer_prefix: bool,
        token_length: int,
    ) -> JSONResponse:
        logger.warning(
            "Authentication failed",
            method=scope.get("method"),
            uri=scope.get("path"),
            has_authorization_header=has_header,
            has_bearer_prefix=has_bearer_prefix,
            token_length=token_length,
            reason=reason,
            message=error.message,
        )
        if self.metrics:
            self.metrics.record_authentication_failure(reason)

        challenge = "Bearer" if reason == "missing_token" else 'Bearer error="invalid_token"'
        return JSONResponse(
            status_code=error.status_code,
            content={"error": error.error, "message": error.message},
            headers={"WWW-Authenticate": challenge},
        )
