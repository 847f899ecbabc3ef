"""
OAuth2 resource server support.

Validates bearer JWTs issued by an OIDC authorization server, exposes the
authenticated principal through a request-scoped security context and
provides route dependencies for scope checks.
"""

from .context import (
    clear_authentication,
    get_all_claims,
    get_authentication,
    get_current_user_email,
    get_current_user_id,
    log_authentication_context,
    set_authentication,
)
from .decoder import JwksKeyProvider, JwtDecoder
from .dependencies import require_authenticated, require_authorities, require_scopes
from .jwt import Jwt, JwtAuthentication, JwtAuthenticationConverter
from .middleware import JwtAuthenticationMiddleware

__all__ = [
    "Jwt",
    "JwtAuthentication",
    "JwtAuthenticationConverter",
    "JwksKeyProvider",
    "JwtDecoder",
    "JwtAuthenticationMiddleware",
    "require_authenticated",
    "require_authorities",
    "require_scopes",
    "set_authentication",
    "get_authentication",
    "clear_authentication",
    "get_current_user_id",
    "get_current_user_email",
    "get_all_claims",
    "log_authentication_context",
]
