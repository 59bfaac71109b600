"""
OIDC/JWT authentication provider.

Defaults to Firebase Authentication ID tokens for the configured Google Cloud
project when no issuer is set explicitly.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx
from jose import JWTError, jwt

from kaichat.core.config import Settings
from kaichat.core.logger import logger
from kaichat.interfaces.auth_provider import IAuthProvider, User

FIREBASE_JWKS_URL = (
    "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"
)
FIREBASE_ISSUER_PREFIX = "https://securetoken.google.com/"
ALGORITHMS = ["RS256"]


class OidcAuthProvider(IAuthProvider):
    """OIDC authentication provider with JWKS validation."""

    def __init__(
        self,
        settings: Settings,
        jwks_ttl_seconds: int = 3600,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        project = settings.GOOGLE_CLOUD_PROJECT
        self._issuer = settings.OIDC_ISSUER or (
            f"{FIREBASE_ISSUER_PREFIX}{project}" if project else ""
        )
        self._audience = settings.OIDC_AUDIENCE or (project if not settings.OIDC_ISSUER else "")
        if not self._issuer and not settings.OIDC_JWKS_URL:
            raise ValueError(
                "OIDC_ISSUER, OIDC_JWKS_URL or GOOGLE_CLOUD_PROJECT must be set for OIDC auth"
            )
        self._jwks_url = settings.OIDC_JWKS_URL or self._default_jwks_url()
        self._email_claim = settings.OIDC_EMAIL_CLAIM or "email"
        self._name_claim = settings.OIDC_NAME_CLAIM or "name"
        self._jwks_ttl_seconds = jwks_ttl_seconds
        self._transport = transport
        self._jwks_cache: dict[str, Any] | None = None
        self._jwks_cache_expiry: float = 0.0

    def _default_jwks_url(self) -> str:
        if self._issuer.startswith(FIREBASE_ISSUER_PREFIX):
            return FIREBASE_JWKS_URL
        return f"{self._issuer.rstrip('/')}/.well-known/jwks.json"

    async def _get_jwks(self) -> dict[str, Any]:
        now = time.time()
        if self._jwks_cache and now < self._jwks_cache_expiry:
            return self._jwks_cache

        async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
            response = await client.get(self._jwks_url)
            response.raise_for_status()
            jwks = response.json()

        logger.debug(f"Fetched {len(jwks.get('keys', []))} signing keys from {self._jwks_url}")
        self._jwks_cache = jwks
        self._jwks_cache_expiry = now + self._jwks_ttl_seconds
        return jwks

    async def _decode_token(self, token: str) -> dict[str, Any]:
        header = jwt.get_unverified_header(token)
        jwks = await self._get_jwks()
        key = next(
            (k for k in jwks.get("keys", []) if k.get("kid") == header.get("kid")),
            None,
        )
        if not key:
            raise JWTError("Signing key not found")

        return jwt.decode(
            token,
            key,
            algorithms=ALGORITHMS,
            audience=self._audience or None,
            issuer=self._issuer or None,
            options={
                "verify_aud": bool(self._audience),
                "verify_iss": bool(self._issuer),
            },
        )

    async def verify_token(self, token: str) -> User:
        claims = await self._decode_token(token)

        subject = claims.get("sub")
        if not subject:
            raise JWTError("Missing subject")

        return User(
            id=str(subject),
            email=claims.get(self._email_claim),
            display_name=claims.get(self._name_claim),
        )

    def is_enabled(self) -> bool:
        return True
