"""Object Storage Interface

Abstract interface over the bucket holding photo originals and export archives.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterable, AsyncIterator, Dict, Optional


class StorageError(Exception):
    """Base exception for object storage failures"""

    def __init__(self, message: str, key: Optional[str] = None):
        self.message = message
        self.key = key
        super().__init__(message)


class ObjectNotFoundError(StorageError):
    """Raised when the requested key does not exist"""

    def __init__(self, key: str):
        super().__init__(f"Object not found: {key}", key=key)


@dataclass
class ObjectMetadata:
    key: str
    size: int
    content_type: Optional[str] = None
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None


@dataclass
class PutObjectResult:
    key: str
    etag: Optional[str]
    size: int


class ObjectStorage(ABC):
    """Interface for object storage operations"""

    @abstractmethod
    def get_object_stream(self, key: str) -> AsyncIterator[bytes]:
        """
        Stream an object's bytes

        Args:
            key: The object key

        Returns:
            Async iterator over the object's chunks

        Raises:
            ObjectNotFoundError: If the key does not exist
            StorageError: On any other storage failure
        """
        pass

    @abstractmethod
    async def put_object(
        self,
        key: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        metadata: Optional[Dict[str, str]] = None,
    ) -> PutObjectResult:
        """
        Upload a small object in a single request

        Args:
            key: The destination key
            content: The object content
            content_type: MIME type stored with the object
            metadata: User metadata stored with the object

        Returns:
            PutObjectResult with the stored size and etag
        """
        pass

    @abstractmethod
    async def put_object_streaming(
        self,
        key: str,
        chunks: AsyncIterable[bytes],
        content_type: str = "application/octet-stream",
        metadata: Optional[Dict[str, str]] = None,
    ) -> PutObjectResult:
        """
        Upload an object of unknown length as it is produced

        Chunks are regrouped into multipart parts and uploaded sequentially, so
        at most one part is buffered. An incomplete upload is aborted and
        leaves no object behind.

        Args:
            key: The destination key
            chunks: Async iterable yielding the object's bytes in order
            content_type: MIME type stored with the object
            metadata: User metadata stored with the object

        Returns:
            PutObjectResult with the total size and etag

        Raises:
            StorageError: If any part fails to upload
        """
        pass

    @abstractmethod
    async def delete_object(self, key: str) -> bool:
        """
        Delete an object

        Returns:
            True if deletion was successful (or the key did not exist)
        """
        pass

    @abstractmethod
    async def generate_signed_url(
        self, key: str, expires_in_seconds: int = 3600
    ) -> tuple[str, datetime]:
        """
        Generate a time-limited download URL

        Returns:
            Tuple of (signed_url, expiry_datetime)
        """
        pass

    @abstractmethod
    async def head_object(self, key: str) -> Optional[ObjectMetadata]:
        """Metadata of an object, or None if it does not exist"""
        pass

    async def exists(self, key: str) -> bool:
        """Check if an object exists"""
        return await self.head_object(key) is not None
