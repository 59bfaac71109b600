"""Abstract interfaces for infrastructure abstraction."""

from kaichat.interfaces.auth_provider import IAuthProvider
from kaichat.interfaces.chat_session_repository import IChatSessionRepository
from kaichat.interfaces.storage_provider import IStorageProvider

__all__ = [
    "IAuthProvider",
    "IChatSessionRepository",
    "IStorageProvider",
]
