"""
Shared fixtures for unit tests.
"""

import httpx
import pytest

from fakes import KAI_URL, InMemoryChatSessionRepository, KaiStub, MemoryStorageProvider
from kaichat.interfaces.auth_provider import User
from kaichat.services.kai_gateway import KaiGateway


@pytest.fixture
def repo():
    return InMemoryChatSessionRepository()


@pytest.fixture
def storage():
    return MemoryStorageProvider()


@pytest.fixture
def kai():
    return KaiStub()


@pytest.fixture
async def gateway(kai):
    gw = KaiGateway(KAI_URL, "test-key", transport=httpx.MockTransport(kai.handler))
    yield gw
    await gw.aclose()


@pytest.fixture
def caller():
    return User(id="user-1", email="user1@example.com", display_name="User One")
