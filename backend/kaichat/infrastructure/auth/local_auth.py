"""
Local JWT authentication provider.
"""

from __future__ import annotations

from typing import Any

from jose import JWTError, jwt

from kaichat.core.config import Settings
from kaichat.interfaces.auth_provider import IAuthProvider, User

ALGORITHM = "HS256"


def _caller_from_claims(claims: dict[str, Any]) -> User:
    subject = claims.get("sub")
    if not subject:
        raise JWTError("Missing subject")
    return User(
        id=str(subject),
        email=claims.get("email"),
        display_name=claims.get("name"),
    )


class LocalAuthProvider(IAuthProvider):
    """Verifies tokens minted by ``core.security.create_access_token``."""

    def __init__(self, settings: Settings):
        if not settings.LOCAL_JWT_SECRET:
            raise ValueError("LOCAL_JWT_SECRET must be set for local auth")
        self._secret = settings.LOCAL_JWT_SECRET
        self._issuer = settings.LOCAL_JWT_ISSUER or None

    async def verify_token(self, token: str) -> User:
        claims = jwt.decode(
            token,
            self._secret,
            algorithms=[ALGORITHM],
            issuer=self._issuer,
            options={"verify_iss": self._issuer is not None},
        )
        return _caller_from_claims(claims)

    def is_enabled(self) -> bool:
        return True
