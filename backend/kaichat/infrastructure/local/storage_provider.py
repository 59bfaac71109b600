"""
Local file system storage provider.
"""

import asyncio
from pathlib import Path
from typing import AsyncIterator, Optional

from kaichat.core.config import get_settings
from kaichat.core.exceptions import InfrastructureError
from kaichat.interfaces.storage_provider import IStorageProvider


class LocalStorageProvider(IStorageProvider):
    """
    Local file system storage implementation.

    Stores files in a local directory structure served under
    ``BASE_URL/storage``. Every stored file is already public.
    """

    def __init__(self, base_path: Optional[str] = None, base_url: Optional[str] = None):
        """
        Initialize local storage provider.

        Args:
            base_path: Base directory for file storage (default: ./storage)
            base_url: Public base URL (default: settings.BASE_URL)
        """
        self.base_path = Path(base_path or "./storage")
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._base_url = base_url

    async def upload_stream(
        self,
        path: str,
        chunks: AsyncIterator[bytes],
        content_type: Optional[str] = None,
    ) -> None:
        """Stream a file into local storage through a partial file."""
        file_path = self._resolve_path(path)
        partial_path = file_path.with_name(file_path.name + ".part")
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            f = open(partial_path, "wb")
            try:
                async for chunk in chunks:
                    # Disk writes stay off the event loop
                    await asyncio.to_thread(f.write, chunk)
            finally:
                f.close()
            partial_path.replace(file_path)
        except asyncio.CancelledError:
            partial_path.unlink(missing_ok=True)
            raise
        except Exception as e:
            partial_path.unlink(missing_ok=True)
            raise InfrastructureError(f"Failed to upload file: {e}") from e

    async def make_public(self, path: str) -> None:
        """Local files are served as-is; only check that the file exists."""
        if not self._resolve_path(path).exists():
            raise InfrastructureError(f"File not found: {path}")

    def get_public_url(self, path: str) -> str:
        """Get HTTP URL relative to BASE_URL."""
        base_url = self._base_url or get_settings().BASE_URL
        return f"{base_url.rstrip('/')}/storage/{path}"

    async def delete(self, path: str) -> bool:
        """Delete a file from local storage."""
        try:
            file_path = self._resolve_path(path)
            if not file_path.exists():
                return False
            file_path.unlink()
            return True
        except OSError as e:
            raise InfrastructureError(f"Failed to delete file: {e}") from e

    def _resolve_path(self, path: str) -> Path:
        """Resolve a key below base_path, refusing keys that escape it."""
        base = self.base_path.resolve()
        resolved = (base / path).resolve()
        if base not in resolved.parents:
            raise InfrastructureError(f"Invalid storage path: {path}")
        return resolved
