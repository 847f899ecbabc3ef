"""
Bearer token validation against an OIDC issuer.

Features:
- Issuer discovery via /.well-known/openid-configuration
- JWKS caching with forced refresh on unknown key ids
- Signature, expiry, issuer, audience and typ header checks
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

import aiohttp
import jwt as pyjwt
import structlog

from ..config import SecuritySettings
from ..core.exceptions import InvalidBearerTokenError, SecurityConfigurationError
from .jwt import Jwt

logger = structlog.get_logger(__name__)


class JwksKeyProvider:
    """
    Resolves signing keys from the issuer's published JWKS.

    The discovery document is fetched once; the key set is cached for
    jwks_cache_seconds and refetched at most once per lookup when a key id is
    not found.
    """

    def __init__(self, settings: SecuritySettings) -> None:
        self.settings = settings
        self._session: Optional[aiohttp.ClientSession] = None
        self._jwks_uri: Optional[str] = None
        self._keys: Dict[Optional[str], pyjwt.PyJWK] = {}
        self._fetched_at: Optional[float] = None
        self._lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.settings.http_timeout_seconds)
            )
        return self._session

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def _fetch_json(self, url: str) -> Dict[str, Any]:
        session = await self._get_session()
        try:
            async with session.get(url) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise SecurityConfigurationError(
                        f"Unexpected HTTP {response.status} from {url}: {error_text[:200]}"
                    )
                return await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise SecurityConfigurationError(f"Failed to fetch {url}: {e}") from e
        except asyncio.TimeoutError as e:
            raise SecurityConfigurationError(f"Timed out fetching {url}") from e

    async def _resolve_jwks_uri(self) -> str:
        if self._jwks_uri is None:
            discovery = await self._fetch_json(self.settings.discovery_url)
            jwks_uri = discovery.get("jwks_uri")
            if not jwks_uri:
                raise SecurityConfigurationError(
                    f"Discovery document at {self.settings.discovery_url} has no jwks_uri"
                )
            self._jwks_uri = jwks_uri
            logger.info("Resolved JWKS endpoint", issuer=self.settings.issuer_uri, jwks_uri=jwks_uri)
        return self._jwks_uri

    def _is_stale(self) -> bool:
        if self._fetched_at is None:
            return True
        return time.monotonic() - self._fetched_at >= self.settings.jwks_cache_seconds

    async def _refresh(self) -> None:
        jwks_uri = await self._resolve_jwks_uri()
        data = await self._fetch_json(jwks_uri)
        try:
            key_set = pyjwt.PyJWKSet.from_dict(data)
        except pyjwt.PyJWKSetError as e:
            raise SecurityConfigurationError(f"Invalid JWKS at {jwks_uri}: {e}") from e

        self._keys = {key.key_id: key for key in key_set.keys}
        self._fetched_at = time.monotonic()
        logger.debug("Loaded JWKS", jwks_uri=jwks_uri, keys=len(self._keys))

    def _lookup(self, kid: Optional[str]) -> Optional[pyjwt.PyJWK]:
        if kid is None:
            # Without a kid only an unambiguous key set can be used
            return next(iter(self._keys.values())) if len(self._keys) == 1 else None
        return self._keys.get(kid)

    async def get_signing_key(self, kid: Optional[str]) -> Optional[pyjwt.PyJWK]:
        async with self._lock:
            if self._is_stale():
                await self._refresh()
                return self._lookup(kid)

            key = self._lookup(kid)
            if key is None:
                logger.info("Unknown key id, refreshing JWKS", kid=kid)
                await self._refresh()
                key = self._lookup(kid)
            return key


class JwtDecoder:
    """
    Validates bearer tokens and returns the decoded Jwt.

    Raises InvalidBearerTokenError for any token that fails validation.
    """

    def __init__(
        self,
        settings: SecuritySettings,
        key_provider: Optional[JwksKeyProvider] = None,
    ) -> None:
        if not settings.issuer_uri:
            raise SecurityConfigurationError(
                "Security is enabled but no issuer_uri is configured "
                "(set SERVICE_COMMON_SECURITY_ISSUER_URI)"
            )
        self.settings = settings
        self.key_provider = key_provider or JwksKeyProvider(settings)
        self.accepted_token_types = {t.lower() for t in settings.accepted_token_types}

        logger.info(
            "JWT decoder initialized",
            issuer=settings.issuer_uri,
            audience=settings.audience or None,
            algorithms=settings.algorithms,
        )

    async def close(self) -> None:
        await self.key_provider.close()

    def _validate_headers(self, headers: Dict[str, Any]) -> None:
        token_type = headers.get("typ")
        if not isinstance(token_type, str) or token_type.lower() not in self.accepted_token_types:
            raise InvalidBearerTokenError(
                f"An error occurred while attempting to decode the Jwt: unsupported token type {token_type!r}"
            )

        algorithm = headers.get("alg")
        if not isinstance(algorithm, str) or algorithm not in self.settings.algorithms:
            raise InvalidBearerTokenError(
                f"An error occurred while attempting to decode the Jwt: unsupported algorithm {algorithm!r}"
            )

    def _validate_audience(self, claims: Dict[str, Any]) -> None:
        if not self.settings.audience:
            return

        aud = claims.get("aud")
        if isinstance(aud, str):
            audiences: List[str] = [aud]
        elif isinstance(aud, list):
            audiences = aud
        else:
            audiences = []
        if not audiences:
            raise InvalidBearerTokenError("Token must have an audience")
        if self.settings.audience not in audiences:
            raise InvalidBearerTokenError("Token audience does not match")

    async def decode(self, token: str) -> Jwt:
        try:
            headers = pyjwt.get_unverified_header(token)
        except pyjwt.PyJWTError as e:
            raise InvalidBearerTokenError(f"An error occurred while attempting to decode the Jwt: {e}") from e

        self._validate_headers(headers)

        signing_key = await self.key_provider.get_signing_key(headers.get("kid"))
        if signing_key is None:
            raise InvalidBearerTokenError(
                "An error occurred while attempting to decode the Jwt: no matching signing key"
            )

        try:
            claims = pyjwt.decode(
                token,
                signing_key.key,
                algorithms=self.settings.algorithms,
                issuer=self.settings.issuer_uri,
                leeway=self.settings.leeway_seconds,
                options={"verify_aud": False},
            )
        except pyjwt.ExpiredSignatureError as e:
            raise InvalidBearerTokenError(f"Jwt expired: {e}") from e
        except (pyjwt.PyJWTError, TypeError, ValueError) as e:
            # Key preparation fails when the header alg does not fit the JWKS key type
            raise InvalidBearerTokenError(f"An error occurred while attempting to decode the Jwt: {e}") from e

        self._validate_audience(claims)
        return Jwt(token_value=token, headers=dict(headers), claims=claims)
