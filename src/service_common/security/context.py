"""
Request-scoped security context.

The authentication middleware stores the current JwtAuthentication here for
the duration of a request; handlers and audit hooks read it back.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional

import structlog

from .jwt import JwtAuthentication

logger = structlog.get_logger(__name__)

_authentication: ContextVar[Optional[JwtAuthentication]] = ContextVar("authentication", default=None)


def set_authentication(authentication: Optional[JwtAuthentication]) -> Token:
    return _authentication.set(authentication)


def get_authentication() -> Optional[JwtAuthentication]:
    return _authentication.get()


def clear_authentication(token: Optional[Token] = None) -> None:
    if token is not None:
        _authentication.reset(token)
    else:
        _authentication.set(None)


def get_current_user_id() -> Optional[str]:
    """Subject claim of the current token."""
    authentication = get_authentication()
    if authentication is None:
        return None
    return authentication.jwt.subject


def get_current_user_email() -> Optional[str]:
    authentication = get_authentication()
    if authentication is None:
        return None
    return authentication.jwt.get_claim("email")


def get_all_claims() -> Optional[Dict[str, Any]]:
    authentication = get_authentication()
    if authentication is None:
        return None
    return dict(authentication.jwt.claims)


def log_authentication_context() -> None:
    """Log the current principal for troubleshooting."""
    try:
        authentication = get_authentication()
        if authentication is None:
            logger.debug("No authentication in security context")
            return

        jwt = authentication.jwt
        logger.debug(
            "Authentication context",
            principal=authentication.name,
            authorities=authentication.authorities,
            issuer=jwt.issuer,
            audience=jwt.audience,
            expires_at=jwt.expires_at.isoformat() if jwt.expires_at else None,
            claims=sorted(jwt.claims.keys()),
        )
    except Exception as e:
        logger.warning(
            "Failed to log authentication context",
            error=str(e),
            error_type=type(e).__name__,
        )
