"""
Token-as-uid authentication for local development and tests.
"""

from kaichat.interfaces.auth_provider import IAuthProvider, User


class MockAuthProvider(IAuthProvider):
    """Treats the bearer token as the caller's uid without any signature check."""

    DEV_USER = User(id="dev_user", email="dev@example.com", display_name="Developer")

    def __init__(self, enabled: bool = True):
        """
        Args:
            enabled: When False every request runs as DEV_USER
        """
        self._enabled = enabled

    async def verify_token(self, token: str) -> User:
        uid = token.strip()
        if not uid:
            raise ValueError("Empty token")
        if uid == self.DEV_USER.id:
            return self.DEV_USER
        # An email-looking uid doubles as the caller's email
        return User(id=uid, email=uid if "@" in uid else None)

    def is_enabled(self) -> bool:
        return self._enabled
