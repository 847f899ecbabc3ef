"""
Decoded JWT and the authentication built from it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

SCOPE_AUTHORITY_PREFIX = "SCOPE_"


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


@dataclass
class Jwt:
    """A validated token with its headers and claims."""

    token_value: str
    headers: Dict[str, Any] = field(default_factory=dict)
    claims: Dict[str, Any] = field(default_factory=dict)

    def get_claim(self, name: str, default: Any = None) -> Any:
        return self.claims.get(name, default)

    @property
    def subject(self) -> Optional[str]:
        return self.claims.get("sub")

    @property
    def issuer(self) -> Optional[str]:
        return self.claims.get("iss")

    @property
    def audience(self) -> List[str]:
        aud = self.claims.get("aud")
        if aud is None:
            return []
        if isinstance(aud, str):
            return [aud]
        return list(aud)

    @property
    def expires_at(self) -> Optional[datetime]:
        return _to_datetime(self.claims.get("exp"))

    @property
    def issued_at(self) -> Optional[datetime]:
        return _to_datetime(self.claims.get("iat"))

    @property
    def scopes(self) -> List[str]:
        scope = self.claims.get("scope", self.claims.get("scp"))
        if not scope:
            return []
        if isinstance(scope, str):
            return scope.split()
        return [str(item) for item in scope]


@dataclass
class JwtAuthentication:
    """Authenticated principal backed by a Jwt."""

    jwt: Jwt
    authorities: List[str] = field(default_factory=list)
    name: Optional[str] = None
    is_authenticated: bool = True

    def __post_init__(self) -> None:
        if self.name is None:
            self.name = self.jwt.subject

    @property
    def token_attributes(self) -> Dict[str, Any]:
        return self.jwt.claims

    def has_authority(self, authority: str) -> bool:
        return authority in self.authorities


class JwtAuthenticationConverter:
    """Maps token scopes to SCOPE_<scope> authorities."""

    def __init__(self, authority_prefix: str = SCOPE_AUTHORITY_PREFIX) -> None:
        self.authority_prefix = authority_prefix

    def convert(self, jwt: Jwt) -> JwtAuthentication:
        authorities = [f"{self.authority_prefix}{scope}" for scope in jwt.scopes]
        return JwtAuthentication(jwt=jwt, authorities=authorities, name=jwt.subject)
