"""S3 Object Storage Adapter

S3-compatible implementation (AWS S3, MinIO) on top of boto3. boto3 is
synchronous, so every network call is pushed to a worker thread.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import AsyncIterable, AsyncIterator, Dict, List, Optional
import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from src.app.services.object_storage import (
    ObjectMetadata,
    ObjectNotFoundError,
    ObjectStorage,
    PutObjectResult,
    StorageError,
)

logger = logging.getLogger(__name__)

# S3 rejects non-final multipart parts below 5 MiB
MIN_PART_SIZE = 5 * 1024 * 1024
DEFAULT_PART_SIZE = 10 * 1024 * 1024
DEFAULT_READ_CHUNK_SIZE = 1024 * 1024

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class S3ObjectStorage(ObjectStorage):
    """S3 storage implementation"""

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        public_endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        force_path_style: bool = False,
        part_size: int = DEFAULT_PART_SIZE,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
        connect_timeout: float = 10,
        read_timeout: float = 60,
        max_attempts: int = 3,
        client=None,
        public_client=None,
    ):
        """
        Initialize S3 storage.

        Args:
            bucket: Bucket holding photos and export archives
            region: AWS region
            endpoint_url: Endpoint used for data transfer (None for AWS)
            public_endpoint_url: Endpoint baked into signed URLs handed to
                browsers, when it differs from the internal one
            access_key_id: Explicit credentials (falls back to the boto3 chain)
            secret_access_key: Explicit credentials
            force_path_style: Path-style addressing, required by MinIO
            part_size: Multipart part size for streaming uploads
            read_chunk_size: Chunk size when streaming objects down
            connect_timeout: Seconds to establish a connection
            read_timeout: Seconds to wait on a socket read
            max_attempts: botocore attempts per call, including the first
            client: Pre-built boto3 client (tests)
            public_client: Pre-built boto3 client used for signing (tests)
        """
        self._bucket = bucket
        self.part_size = max(part_size, MIN_PART_SIZE)
        self.read_chunk_size = read_chunk_size

        client_kwargs = {
            "region": region,
            "access_key_id": access_key_id,
            "secret_access_key": secret_access_key,
            "force_path_style": force_path_style,
            "connect_timeout": connect_timeout,
            "read_timeout": read_timeout,
            "max_attempts": max_attempts,
        }
        self._s3_client = client or self._make_client(endpoint_url, **client_kwargs)
        if public_client is not None:
            self._public_client = public_client
        elif public_endpoint_url and client is None:
            self._public_client = self._make_client(public_endpoint_url, **client_kwargs)
        else:
            self._public_client = self._s3_client

    @staticmethod
    def _make_client(
        endpoint_url: Optional[str],
        region: str,
        access_key_id: Optional[str],
        secret_access_key: Optional[str],
        force_path_style: bool,
        connect_timeout: float,
        read_timeout: float,
        max_attempts: int,
    ):
        return boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=BotoConfig(
                signature_version="s3v4",
                s3={"addressing_style": "path" if force_path_style else "auto"},
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                retries={"max_attempts": max_attempts, "mode": "standard"},
            ),
        )

    async def get_object_stream(self, key: str) -> AsyncIterator[bytes]:
        try:
            response = await asyncio.to_thread(
                self._s3_client.get_object, Bucket=self._bucket, Key=key
            )
        except (ClientError, BotoCoreError) as e:
            raise _storage_error(e, key, "get_object") from e

        body = response["Body"]
        try:
            while True:
                try:
                    chunk = await asyncio.to_thread(body.read, self.read_chunk_size)
                except (ClientError, BotoCoreError) as e:
                    raise _storage_error(e, key, "read") from e
                if not chunk:
                    break
                yield chunk
        finally:
            body.close()

    async def put_object(
        self,
        key: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        metadata: Optional[Dict[str, str]] = None,
    ) -> PutObjectResult:
        try:
            response = await asyncio.to_thread(
                self._s3_client.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
                Metadata=metadata or {},
            )
        except (ClientError, BotoCoreError) as e:
            raise _storage_error(e, key, "put_object") from e
        return PutObjectResult(key=key, etag=_etag(response), size=len(content))

    async def put_object_streaming(
        self,
        key: str,
        chunks: AsyncIterable[bytes],
        content_type: str = "application/octet-stream",
        metadata: Optional[Dict[str, str]] = None,
    ) -> PutObjectResult:
        try:
            created = await asyncio.to_thread(
                self._s3_client.create_multipart_upload,
                Bucket=self._bucket,
                Key=key,
                ContentType=content_type,
                Metadata=metadata or {},
            )
        except (ClientError, BotoCoreError) as e:
            raise _storage_error(e, key, "create_multipart_upload") from e

        upload_id = created["UploadId"]
        parts: List[Dict] = []
        buffer = bytearray()
        size = 0
        try:
            async for chunk in chunks:
                buffer += chunk
                size += len(chunk)
                while len(buffer) >= self.part_size:
                    part = bytes(buffer[:self.part_size])
                    del buffer[:self.part_size]
                    parts.append(await self._upload_part(key, upload_id, len(parts) + 1, part))

            if buffer or not parts:
                parts.append(await self._upload_part(key, upload_id, len(parts) + 1, bytes(buffer)))

            completed = await asyncio.to_thread(
                self._s3_client.complete_multipart_upload,
                Bucket=self._bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except (ClientError, BotoCoreError) as e:
            await self._abort_multipart_upload(key, upload_id)
            raise _storage_error(e, key, "multipart upload") from e
        except BaseException:
            # Cancellation or a failing producer
            await self._abort_multipart_upload(key, upload_id)
            raise

        logger.info(f"[S3ObjectStorage] Uploaded {key} in {len(parts)} part(s), {size} bytes")
        return PutObjectResult(key=key, etag=_etag(completed), size=size)

    async def _upload_part(self, key: str, upload_id: str, part_number: int, data: bytes) -> Dict:
        response = await asyncio.to_thread(
            self._s3_client.upload_part,
            Bucket=self._bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=data,
        )
        logger.debug(f"[S3ObjectStorage] Part {part_number} of {key} uploaded ({len(data)} bytes)")
        return {"PartNumber": part_number, "ETag": response["ETag"]}

    async def _abort_multipart_upload(self, key: str, upload_id: str) -> None:
        try:
            await asyncio.to_thread(
                self._s3_client.abort_multipart_upload,
                Bucket=self._bucket,
                Key=key,
                UploadId=upload_id,
            )
            logger.info(f"[S3ObjectStorage] Aborted multipart upload of {key}")
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"[S3ObjectStorage] Could not abort multipart upload of {key}: {e}")

    async def delete_object(self, key: str) -> bool:
        try:
            await asyncio.to_thread(self._s3_client.delete_object, Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise _storage_error(e, key, "delete_object") from e
        return True

    async def generate_signed_url(
        self, key: str, expires_in_seconds: int = 3600
    ) -> tuple[str, datetime]:
        """Presigned GET URL; signing is local, no request is made"""
        try:
            url = self._public_client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=expires_in_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            raise _storage_error(e, key, "generate_presigned_url") from e
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in_seconds)
        return url, expires_at

    async def head_object(self, key: str) -> Optional[ObjectMetadata]:
        try:
            response = await asyncio.to_thread(
                self._s3_client.head_object, Bucket=self._bucket, Key=key
            )
        except (ClientError, BotoCoreError) as e:
            error = _storage_error(e, key, "head_object")
            if isinstance(error, ObjectNotFoundError):
                return None
            raise error from e
        return ObjectMetadata(
            key=key,
            size=response.get("ContentLength", 0),
            content_type=response.get("ContentType"),
            etag=_etag(response),
            last_modified=response.get("LastModified"),
        )


def _storage_error(error: Exception, key: str, operation: str) -> StorageError:
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code")
        if code in _NOT_FOUND_CODES:
            return ObjectNotFoundError(key)
        return StorageError(f"S3 {operation} failed ({code}): {error}", key=key)
    return StorageError(f"S3 {operation} failed: {error}", key=key)


def _etag(response: Dict) -> Optional[str]:
    etag = response.get("ETag")
    return etag.strip('"') if etag else None
