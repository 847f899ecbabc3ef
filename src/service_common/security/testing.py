"""
Test helpers for secured services.

Build Jwt objects without an authorization server and plug StaticJwtDecoder
into install_service_common / create_app:

    app = create_app(settings, jwt_decoder=StaticJwtDecoder())
    custom_jwt.set(JwtTestBuilder.admin().with_scopes("reports:read").build())
"""

from contextvars import ContextVar
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from .jwt import Jwt

DEFAULT_SUBJECT = "test-user"
DEFAULT_SCOPE = "openid profile email"
DEFAULT_ISSUER = "https://test-issuer.example.com/"
DEFAULT_AUDIENCE = "https://test-api.example.com"
DEFAULT_TOKEN_VALUE = "test-token"

custom_jwt: ContextVar[Optional[Jwt]] = ContextVar("custom_jwt", default=None)


class JwtTestBuilder:
    """Fluent builder for test JWTs with sensible defaults."""

    def __init__(self) -> None:
        now = datetime.now(timezone.utc).replace(microsecond=0)
        self._token_value = DEFAULT_TOKEN_VALUE
        self._headers: Dict[str, Any] = {"alg": "RS256", "typ": "JWT"}
        self._claims: Dict[str, Any] = {
            "sub": DEFAULT_SUBJECT,
            "scope": DEFAULT_SCOPE,
            "iss": DEFAULT_ISSUER,
            "aud": DEFAULT_AUDIENCE,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(hours=1)).timestamp()),
        }

    @classmethod
    def default_jwt(cls) -> Jwt:
        return cls().build()

    @classmethod
    def user(cls, subject: str) -> "JwtTestBuilder":
        """New builder for a token issued to subject."""
        return cls().with_subject(subject)

    @classmethod
    def admin(cls) -> "JwtTestBuilder":
        return cls.user("admin-user")

    def with_subject(self, subject: str) -> "JwtTestBuilder":
        self._claims["sub"] = subject
        return self

    def with_scopes(self, *scopes: str) -> "JwtTestBuilder":
        self._claims["scope"] = " ".join(scopes)
        return self

    def with_issuer(self, issuer: str) -> "JwtTestBuilder":
        self._claims["iss"] = issuer
        return self

    def with_audience(self, audience: str) -> "JwtTestBuilder":
        self._claims["aud"] = audience
        return self

    def with_issued_at(self, issued_at: datetime) -> "JwtTestBuilder":
        self._claims["iat"] = int(issued_at.timestamp())
        return self

    def with_expires_at(self, expires_at: datetime) -> "JwtTestBuilder":
        self._claims["exp"] = int(expires_at.timestamp())
        return self

    def with_claim(self, name: str, value: Any) -> "JwtTestBuilder":
        self._claims[name] = value
        return self

    def with_token_value(self, token_value: str) -> "JwtTestBuilder":
        self._token_value = token_value
        return self

    def build(self) -> Jwt:
        return Jwt(token_value=self._token_value, headers=dict(self._headers), claims=dict(self._claims))


class StaticJwtDecoder:
    """
    Decoder that accepts any token.

    Returns custom_jwt when set in the current context, otherwise the Jwt given
    at construction, otherwise the default test Jwt.
    """

    def __init__(self, jwt: Optional[Jwt] = None) -> None:
        self.jwt = jwt

    async def decode(self, token: str) -> Jwt:
        jwt = custom_jwt.get()
        if jwt is None:
            jwt = self.jwt or JwtTestBuilder.default_jwt()
        return jwt

    async def close(self) -> None:
        return None
