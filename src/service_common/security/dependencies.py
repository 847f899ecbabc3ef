"""
Route-level authorization dependencies.

    @router.get("/reports", dependencies=[Depends(require_scopes("reports:read"))])
    async def list_reports(): ...
"""

from typing import Awaitable, Callable

import structlog

from ..core.exceptions import AccessDeniedError, AuthenticationError
from .context import get_authentication
from .jwt import SCOPE_AUTHORITY_PREFIX, JwtAuthentication

logger = structlog.get_logger(__name__)


async def require_authenticated() -> JwtAuthentication:
    """Current authentication; 401 when the request is anonymous."""
    authentication = get_authentication()
    if authentication is None or not authentication.is_authenticated:
        raise AuthenticationError()
    return authentication


def require_authorities(*authorities: str) -> Callable[[], Awaitable[JwtAuthentication]]:
    """Dependency requiring every listed authority."""

    async def dependency() -> JwtAuthentication:
        authentication = await require_authenticated()
        missing = [authority for authority in authorities if not authentication.has_authority(authority)]
        if missing:
            logger.warning(
                "Access denied",
                principal=authentication.name,
                missing_authorities=missing,
            )
            raise AccessDeniedError()
        return authentication

    return dependency


def require_scopes(*scopes: str) -> Callable[[], Awaitable[JwtAuthentication]]:
    return require_authorities(*(f"{SCOPE_AUTHORITY_PREFIX}{scope}" for scope in scopes))
