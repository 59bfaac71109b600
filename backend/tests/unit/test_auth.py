"""
Unit tests for auth providers and caller resolution.
"""

import pytest

from kaichat.api.deps import get_caller
from kaichat.core.config import Settings
from kaichat.core.exceptions import AuthenticationError
from kaichat.core.security import create_access_token
from kaichat.infrastructure.auth.local_auth import LocalAuthProvider
from kaichat.infrastructure.local.mock_auth import MockAuthProvider


def _settings(**overrides) -> Settings:
    values = {"LOCAL_JWT_SECRET": "unit-test-secret", "AUTH_PROVIDER": "local"}
    values.update(overrides)
    return Settings(**values)


@pytest.mark.asyncio
async def test_local_token_roundtrip():
    settings = _settings()
    token = create_access_token("user-1", settings, email="u@example.com", full_name="User One")

    user = await LocalAuthProvider(settings).verify_token(token)

    assert user.id == "user-1"
    assert user.email == "u@example.com"
    assert user.display_name == "User One"


@pytest.mark.asyncio
async def test_local_token_wrong_secret_rejected():
    token = create_access_token("user-1", _settings(LOCAL_JWT_SECRET="other"))

    with pytest.raises(Exception):
        await LocalAuthProvider(_settings()).verify_token(token)


@pytest.mark.asyncio
async def test_local_token_expired_rejected():
    settings = _settings()
    token = create_access_token("user-1", settings, expires_minutes=-1)

    with pytest.raises(Exception):
        await LocalAuthProvider(settings).verify_token(token)


def test_local_auth_requires_secret():
    with pytest.raises(ValueError):
        LocalAuthProvider(_settings(LOCAL_JWT_SECRET=""))


@pytest.mark.asyncio
async def test_get_caller_without_header_is_none():
    assert await get_caller(authorization=None, auth_provider=MockAuthProvider()) is None


@pytest.mark.asyncio
async def test_get_caller_mock_token_is_user_id():
    caller = await get_caller(authorization="Bearer user-42", auth_provider=MockAuthProvider())

    assert caller.id == "user-42"


@pytest.mark.asyncio
async def test_get_caller_malformed_header():
    with pytest.raises(AuthenticationError):
        await get_caller(authorization="Token abc", auth_provider=MockAuthProvider())


@pytest.mark.asyncio
async def test_get_caller_invalid_token():
    with pytest.raises(AuthenticationError):
        await get_caller(authorization="Bearer not-a-jwt", auth_provider=LocalAuthProvider(_settings()))


@pytest.mark.asyncio
async def test_get_caller_auth_disabled_uses_dev_user():
    caller = await get_caller(authorization=None, auth_provider=MockAuthProvider(enabled=False))

    assert caller.id == "dev_user"
