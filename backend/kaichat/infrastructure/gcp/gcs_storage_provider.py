"""
Google Cloud Storage provider.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional

from kaichat.core.exceptions import InfrastructureError
from kaichat.interfaces.storage_provider import IStorageProvider

# Resumable upload chunk size; must be a multiple of 256 KiB.
_WRITER_CHUNK_SIZE = 256 * 1024


class GcsStorageProvider(IStorageProvider):
    """Google Cloud Storage implementation."""

    def __init__(
        self,
        bucket_name: str,
        project_id: str | None = None,
        client=None,
        chunk_size: int = _WRITER_CHUNK_SIZE,
    ):
        if not bucket_name:
            raise InfrastructureError("GCS_BUCKET must be set for Google Cloud Storage")
        self.bucket_name = bucket_name
        self.chunk_size = chunk_size
        self._client = client or self._create_client(project_id)
        self._bucket = self._client.bucket(bucket_name)

    def _create_client(self, project_id: str | None):
        try:
            from google.cloud import storage
        except ImportError as e:
            raise InfrastructureError(
                "google-cloud-storage is not installed. Install with: pip install google-cloud-storage"
            ) from e
        return storage.Client(project=project_id or None)

    async def upload_stream(
        self,
        path: str,
        chunks: AsyncIterator[bytes],
        content_type: Optional[str] = None,
    ) -> None:
        blob = self._bucket.blob(path)
        try:
            writer = await asyncio.to_thread(
                blob.open,
                "wb",
                chunk_size=self.chunk_size,
                content_type=content_type or "application/octet-stream",
            )
        except Exception as e:
            raise InfrastructureError(f"Failed to open GCS writer for {path}: {e}") from e

        # An unclosed resumable upload is never finalized, so aborting
        # leaves no object behind.
        try:
            async for chunk in chunks:
                await asyncio.to_thread(writer.write, chunk)
            await asyncio.to_thread(writer.close)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise InfrastructureError(f"Failed to upload {path} to GCS: {e}") from e

    async def make_public(self, path: str) -> None:
        try:
            await asyncio.to_thread(self._bucket.blob(path).make_public)
        except Exception as e:
            raise InfrastructureError(f"Failed to make {path} public: {e}") from e

    def get_public_url(self, path: str) -> str:
        return f"https://storage.googleapis.com/{self.bucket_name}/{path}"

    async def delete(self, path: str) -> bool:
        try:
            from google.api_core.exceptions import NotFound
        except ImportError as e:
            raise InfrastructureError("google-api-core is not installed") from e

        try:
            await asyncio.to_thread(self._bucket.blob(path).delete)
            return True
        except NotFound:
            return False
        except Exception as e:
            raise InfrastructureError(f"Failed to delete {path} from GCS: {e}") from e
