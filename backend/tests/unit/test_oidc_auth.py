"""
Unit tests for the OIDC (Firebase ID token) auth provider.
"""

import time

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt

from kaichat.api.deps import get_caller
from kaichat.core.config import Settings
from kaichat.core.exceptions import AuthenticationError
from kaichat.infrastructure.auth.oidc_auth import FIREBASE_JWKS_URL, OidcAuthProvider

PROJECT = "kai-test"
ISSUER = f"https://securetoken.google.com/{PROJECT}"


@pytest.fixture(scope="module")
def signing_key():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    public_jwk = jwk.construct(public_pem, algorithm="RS256").to_dict()
    public_jwk["kid"] = "key-1"
    return private_pem, public_jwk


@pytest.fixture
def jwks_requests():
    return []


@pytest.fixture
def provider(signing_key, jwks_requests):
    _, public_jwk = signing_key

    def handler(request: httpx.Request) -> httpx.Response:
        jwks_requests.append(str(request.url))
        return httpx.Response(200, json={"keys": [public_jwk]})

    settings = Settings(ENVIRONMENT="gcp", GOOGLE_CLOUD_PROJECT=PROJECT)
    return OidcAuthProvider(settings, transport=httpx.MockTransport(handler))


def _token(signing_key, kid: str = "key-1", **overrides) -> str:
    private_pem, _ = signing_key
    now = int(time.time())
    claims = {
        "iss": ISSUER,
        "aud": PROJECT,
        "sub": "firebase-uid-1",
        "email": "learner@example.com",
        "name": "Learner",
        "iat": now,
        "exp": now + 3600,
    }
    claims.update(overrides)
    return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": kid})


@pytest.mark.asyncio
async def test_firebase_token_verified_against_jwks(provider, signing_key, jwks_requests):
    user = await provider.verify_token(_token(signing_key))
    again = await provider.verify_token(_token(signing_key))

    assert user.id == "firebase-uid-1"
    assert user.email == "learner@example.com"
    assert user.display_name == "Learner"
    assert again.id == user.id
    assert jwks_requests == [FIREBASE_JWKS_URL]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"aud": "another-project"},
        {"iss": "https://securetoken.google.com/another-project"},
        {"exp": int(time.time()) - 60},
    ],
)
async def test_firebase_token_with_wrong_claims_rejected(provider, signing_key, overrides):
    with pytest.raises(Exception):
        await provider.verify_token(_token(signing_key, **overrides))


@pytest.mark.asyncio
async def test_unknown_signing_key_rejected(provider, signing_key):
    with pytest.raises(Exception):
        await provider.verify_token(_token(signing_key, kid="rotated-away"))


@pytest.mark.asyncio
async def test_get_caller_rejects_forged_token(provider):
    with pytest.raises(AuthenticationError):
        await get_caller(authorization="Bearer firebase-uid-1", auth_provider=provider)


def test_oidc_requires_issuer_or_project():
    with pytest.raises(ValueError):
        OidcAuthProvider(Settings(ENVIRONMENT="gcp", GOOGLE_CLOUD_PROJECT="", OIDC_ISSUER=""))


def test_explicit_issuer_uses_well_known_jwks():
    provider = OidcAuthProvider(Settings(OIDC_ISSUER="https://login.example.com/"))

    assert provider._jwks_url == "https://login.example.com/.well-known/jwks.json"


@pytest.mark.parametrize(
    "environment, configured, expected",
    [
        ("gcp", None, "oidc"),
        ("local", None, "mock"),
        ("gcp", "local", "local"),
        ("local", "oidc", "oidc"),
    ],
)
def test_auth_provider_default_depends_on_environment(environment, configured, expected):
    settings = Settings(ENVIRONMENT=environment, AUTH_PROVIDER=configured)

    assert settings.auth_provider == expected
