"""
Object storage provider interface.

Defines the contract for uploaded artifact storage.
Implementations: local file system, Google Cloud Storage.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional


class IStorageProvider(ABC):
    """Abstract interface for object storage."""

    @abstractmethod
    async def upload_stream(
        self,
        path: str,
        chunks: AsyncIterator[bytes],
        content_type: Optional[str] = None,
    ) -> None:
        """
        Stream an object to storage chunk by chunk.

        The whole object is never held in memory. A failure while writing
        leaves no object behind.

        Args:
            path: Object key
            chunks: Async iterator of body chunks
            content_type: Optional MIME type

        Raises:
            InfrastructureError: The write failed
        """
        pass

    @abstractmethod
    async def make_public(self, path: str) -> None:
        """Make an object world-readable."""
        pass

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        """
        Get the public URL of an object.

        Deterministic in the bucket/base location and the key.
        """
        pass

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """
        Delete an object.

        Returns:
            True if an object was deleted
        """
        pass
