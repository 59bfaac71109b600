"""
Dependency injection for API endpoints.

This module provides FastAPI dependencies that inject the correct
infrastructure implementations based on environment configuration.
"""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header

from kaichat.core.config import get_settings
from kaichat.core.exceptions import AuthenticationError
from kaichat.core.logger import logger
from kaichat.interfaces.auth_provider import IAuthProvider, User
from kaichat.interfaces.chat_session_repository import IChatSessionRepository
from kaichat.interfaces.storage_provider import IStorageProvider
from kaichat.services.chat_session_service import ChatSessionService
from kaichat.services.history_service import HistoryService
from kaichat.services.kai_gateway import KaiGateway
from kaichat.services.tool_ingestion_service import ToolIngestionService


# ===========================================
# Adapter Dependencies
# ===========================================


@lru_cache()
def get_chat_session_repository() -> IChatSessionRepository:
    """Get chat session repository instance."""
    settings = get_settings()
    if settings.is_gcp:
        from kaichat.infrastructure.gcp.firestore_chat_session_repository import (
            FirestoreChatSessionRepository,
        )
        return FirestoreChatSessionRepository(
            settings.FIRESTORE_COLLECTION, settings.GOOGLE_CLOUD_PROJECT
        )
    else:
        from kaichat.infrastructure.local.chat_session_repository import SqliteChatSessionRepository
        return SqliteChatSessionRepository()


@lru_cache()
def get_storage_provider() -> IStorageProvider:
    """Get storage provider instance."""
    settings = get_settings()
    if settings.is_gcp:
        from kaichat.infrastructure.gcp.gcs_storage_provider import GcsStorageProvider
        return GcsStorageProvider(
            settings.GCS_BUCKET,
            settings.GOOGLE_CLOUD_PROJECT,
            chunk_size=settings.UPLOAD_CHUNK_SIZE,
        )
    else:
        from kaichat.infrastructure.local.storage_provider import LocalStorageProvider
        return LocalStorageProvider(settings.STORAGE_BASE_PATH)


@lru_cache()
def get_kai_gateway() -> KaiGateway:
    """Get Kai AI gateway instance."""
    settings = get_settings()
    return KaiGateway(
        endpoint=settings.KAI_ENDPOINT,
        api_key=settings.KAI_API_KEY,
        timeout=settings.KAI_TIMEOUT_SECONDS,
        debug=settings.DEBUG,
    )


@lru_cache()
def get_auth_provider() -> IAuthProvider:
    """Get auth provider instance."""
    settings = get_settings()
    provider = settings.auth_provider
    if provider == "oidc":
        from kaichat.infrastructure.auth.oidc_auth import OidcAuthProvider

        return OidcAuthProvider(settings)

    if provider == "local":
        from kaichat.infrastructure.auth.local_auth import LocalAuthProvider

        return LocalAuthProvider(settings)

    from kaichat.infrastructure.local.mock_auth import MockAuthProvider
    if settings.is_gcp:
        logger.warning("Mock auth is enabled on GCP; bearer tokens are not verified")
    return MockAuthProvider(enabled=True)


# ===========================================
# Service Dependencies
# ===========================================


def get_chat_session_service(
    repo: IChatSessionRepository = Depends(get_chat_session_repository),
    gateway: KaiGateway = Depends(get_kai_gateway),
) -> ChatSessionService:
    return ChatSessionService(repo=repo, gateway=gateway)


def get_history_service(
    repo: IChatSessionRepository = Depends(get_chat_session_repository),
) -> HistoryService:
    return HistoryService(repo=repo)


def get_tool_ingestion_service(
    storage: IStorageProvider = Depends(get_storage_provider),
    gateway: KaiGateway = Depends(get_kai_gateway),
) -> ToolIngestionService:
    return ToolIngestionService(
        storage=storage,
        gateway=gateway,
        queue_depth=get_settings().UPLOAD_QUEUE_DEPTH,
    )


# ===========================================
# Caller Identity
# ===========================================


async def get_caller(
    authorization: Annotated[str | None, Header()] = None,
    auth_provider: IAuthProvider = Depends(get_auth_provider),
) -> Optional[User]:
    """
    Resolve the caller from the bearer token.

    No header means no caller; the operation decides whether that is an
    error so its checks keep their order. A malformed or invalid token is
    rejected here.
    """
    if not auth_provider.is_enabled():
        # Mock user for development
        return User(id="dev_user", email="dev@example.com", display_name="Developer")

    if not authorization:
        return None

    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid scheme")
    except ValueError:
        raise AuthenticationError("Invalid authorization header format")

    try:
        return await auth_provider.verify_token(token)
    except Exception as e:
        logger.warning(f"Token verification failed: {e}")
        raise AuthenticationError("Invalid or expired token") from e


# ===========================================
# Type Aliases for Dependency Injection
# ===========================================

Caller = Annotated[Optional[User], Depends(get_caller)]
ChatService = Annotated[ChatSessionService, Depends(get_chat_session_service)]
HistoryQueryService = Annotated[HistoryService, Depends(get_history_service)]
ToolService = Annotated[ToolIngestionService, Depends(get_tool_ingestion_service)]
