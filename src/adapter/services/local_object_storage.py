"""Local Object Storage Adapter

Local filesystem implementation for development and testing.
"""
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncIterable, AsyncIterator, Dict, Optional
import aiofiles
from src.app.services.object_storage import (
    ObjectMetadata,
    ObjectNotFoundError,
    ObjectStorage,
    PutObjectResult,
    StorageError,
)

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 1024 * 1024


class LocalObjectStorage(ObjectStorage):
    """Local filesystem storage implementation"""

    def __init__(self, base_path: str, base_url: str = "http://localhost:8000/files"):
        """
        Initialize local object storage

        Args:
            base_path: Base directory for stored objects
            base_url: Base URL for generating download links
        """
        self.base_path = Path(base_path).resolve()
        self.base_url = base_url.rstrip("/")
        # Ensure base directory exists
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        full_path = (self.base_path / key).resolve()
        if full_path != self.base_path and self.base_path not in full_path.parents:
            raise StorageError(f"Key escapes storage root: {key}", key=key)
        return full_path

    async def get_object_stream(self, key: str) -> AsyncIterator[bytes]:
        full_path = self._path_for(key)
        try:
            async with aiofiles.open(full_path, "rb") as f:
                while True:
                    chunk = await f.read(READ_CHUNK_SIZE)
                    if not chunk:
                        break
                    yield chunk
        except FileNotFoundError as e:
            raise ObjectNotFoundError(key) from e
        except OSError as e:
            raise StorageError(f"Could not read {key}: {e}", key=key) from e

    async def put_object(
        self,
        key: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        metadata: Optional[Dict[str, str]] = None,
    ) -> PutObjectResult:
        """Upload file content to local storage"""
        full_path = self._path_for(key)
        try:
            # Ensure parent directory exists
            full_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(full_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            raise StorageError(f"Could not write {key}: {e}", key=key) from e
        return PutObjectResult(key=key, etag=None, size=len(content))

    async def put_object_streaming(
        self,
        key: str,
        chunks: AsyncIterable[bytes],
        content_type: str = "application/octet-stream",
        metadata: Optional[Dict[str, str]] = None,
    ) -> PutObjectResult:
        """Write to a temporary sibling and rename, so readers never see a partial file"""
        full_path = self._path_for(key)
        partial_path = full_path.with_name(full_path.name + ".part")
        size = 0
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(partial_path, "wb") as f:
                async for chunk in chunks:
                    await f.write(chunk)
                    size += len(chunk)
            os.replace(partial_path, full_path)
        except OSError as e:
            _remove_quietly(partial_path)
            raise StorageError(f"Could not write {key}: {e}", key=key) from e
        except BaseException:
            _remove_quietly(partial_path)
            raise

        logger.info(f"[LocalObjectStorage] Stored {key} ({size} bytes)")
        return PutObjectResult(key=key, etag=None, size=size)

    async def delete_object(self, key: str) -> bool:
        """Delete a file from local storage"""
        full_path = self._path_for(key)
        try:
            if full_path.exists():
                os.remove(full_path)
            return True
        except OSError as e:
            raise StorageError(f"Could not delete {key}: {e}", key=key) from e

    async def generate_signed_url(
        self, key: str, expires_in_seconds: int = 3600
    ) -> tuple[str, datetime]:
        """
        Generate a download URL for local files

        Note: For local storage, this generates a simple URL without actual signing.
        In production, use S3 or similar with real signed URLs.
        """
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in_seconds)
        url = f"{self.base_url}/{key}"
        return url, expires_at

    async def head_object(self, key: str) -> Optional[ObjectMetadata]:
        full_path = self._path_for(key)
        if not full_path.is_file():
            return None
        stat = full_path.stat()
        return ObjectMetadata(
            key=key,
            size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
