"""Archive Builder

Streams photos from object storage into a ZIP archive that is uploaded to its
destination key while it is still being written.
"""
import asyncio
import hashlib
import logging
import zipfile
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Optional, Sequence
from src.app.services.object_storage import ObjectStorage, PutObjectResult, StorageError
from src.domain.export_job import ExportJob
from src.domain.export_progress import ExportProgress
from src.domain.photo import Photo

logger = logging.getLogger(__name__)

ZIP_CONTENT_TYPE = "application/zip"


class ArchiveError(Exception):
    """Raised when the archive as a whole cannot be produced"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class UploadError(ArchiveError):
    """Raised when the streaming upload of the archive fails"""
    pass


class PhotoFetchError(Exception):
    """A single photo could not be read from storage"""

    def __init__(self, photo_id: str, message: str, attempts: int = 1):
        self.photo_id = photo_id
        self.message = message
        self.attempts = attempts
        super().__init__(f"Photo {photo_id}: {message}")


@dataclass
class ArchiveResult:
    archive_bytes: int
    checksum: str
    etag: Optional[str]
    processed_photos: int
    failed_photos: int


@dataclass
class _FetchOutcome:
    photo: Photo
    data: Optional[bytes] = None
    error: Optional[PhotoFetchError] = None


class _ArchiveSink:
    """
    Write-only file object handed to zipfile.

    It deliberately has no tell()/seek(), which makes zipfile write entries
    with data descriptors instead of seeking back. Every byte is hashed and
    counted before being drained towards the upload, so the checksum covers
    exactly the delivered artifact.
    """

    def __init__(self):
        self._buffer = bytearray()
        self._digest = hashlib.sha256()
        self.bytes_written = 0

    def write(self, data) -> int:
        view = memoryview(data)
        self._buffer += view
        self._digest.update(view)
        self.bytes_written += view.nbytes
        return view.nbytes

    def flush(self) -> None:
        pass

    def drain(self) -> bytes:
        chunk = bytes(self._buffer)
        self._buffer.clear()
        return chunk

    @property
    def checksum(self) -> str:
        return self._digest.hexdigest()


async def _iter_channel(channel: asyncio.Queue) -> AsyncIterator[bytes]:
    while True:
        chunk = await channel.get()
        if chunk is None:
            return
        yield chunk


class ArchiveBuilder:
    """
    Builds one export archive.

    Photos are processed in fixed-size batches. Within a batch, fetches run
    concurrently up to `max_concurrent_downloads` and are appended in
    completion order. A photo that still fails after `max_attempts` is replaced
    by a small text placeholder; the job only fails when the archive or its
    upload breaks, or when no photo at all could be exported.
    """

    def __init__(
        self,
        object_storage: ObjectStorage,
        batch_size: int = 5,
        max_concurrent_downloads: int = 3,
        download_timeout: float = 60.0,
        max_attempts: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 10.0,
        batch_delay: float = 0.1,
        compression_level: int = 1,
        upload_queue_size: int = 4,
    ):
        """
        Initialize ArchiveBuilder.

        Args:
            object_storage: Storage holding the originals and receiving the archive
            batch_size: Photos per batch
            max_concurrent_downloads: Concurrent fetches within a batch
            download_timeout: Seconds allowed for one fetch attempt
            max_attempts: Fetch attempts per photo, including the first
            retry_base_delay: First backoff delay in seconds (doubles per attempt)
            retry_max_delay: Upper bound for a backoff delay
            batch_delay: Pause between batches in seconds
            compression_level: Deflate level, 0 stores entries uncompressed
            upload_queue_size: Archive chunks allowed to wait for the uploader
        """
        self.object_storage = object_storage
        self.batch_size = max(1, batch_size)
        self.max_concurrent_downloads = max(1, max_concurrent_downloads)
        self.download_timeout = download_timeout
        self.max_attempts = max(1, max_attempts)
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self.batch_delay = batch_delay
        self.compression_level = compression_level
        self.upload_queue_size = max(1, upload_queue_size)

    async def build(
        self,
        job: ExportJob,
        photos: Sequence[Photo],
        progress: ExportProgress,
        missing_photo_ids: Sequence[str] = (),
    ) -> ArchiveResult:
        """
        Stream the photos into a ZIP stored at `job.object_key`

        Args:
            job: The export job being built
            photos: Photos to include, in the preferred entry order
            progress: Counters shared with the caller for progress reporting
            missing_photo_ids: Requested ids whose metadata no longer exists;
                each gets a placeholder entry

        Returns:
            ArchiveResult with the archive size and SHA-256 hex digest

        Raises:
            ArchiveError: Nothing to export, every photo failed, or zip failure
            UploadError: The destination upload failed
        """
        total = len(photos) + len(missing_photo_ids)
        if total == 0:
            raise ArchiveError("No photos to export")

        sink = _ArchiveSink()
        channel: asyncio.Queue = asyncio.Queue(maxsize=self.upload_queue_size)
        upload_task = asyncio.ensure_future(
            self.object_storage.put_object_streaming(
                job.object_key,
                _iter_channel(channel),
                content_type=ZIP_CONTENT_TYPE,
                metadata={"export-id": job.id, "total-photos": str(total)},
            )
        )

        try:
            await self._write_archive(
                job, photos, missing_photo_ids, sink, channel, upload_task, progress
            )
            upload = await upload_task
        except StorageError as e:
            raise UploadError(f"Archive upload failed: {e.message}") from e
        finally:
            if not upload_task.done():
                upload_task.cancel()
                await asyncio.gather(upload_task, return_exceptions=True)

        if upload.size != sink.bytes_written:
            raise UploadError(
                f"Uploaded {upload.size} bytes but the archive has {sink.bytes_written}"
            )

        logger.info(
            f"[ArchiveBuilder] Export {job.id} archived {progress.succeeded_photos}/{total} photos "
            f"({progress.failed_photos} failed), {sink.bytes_written} bytes"
        )
        return ArchiveResult(
            archive_bytes=sink.bytes_written,
            checksum=sink.checksum,
            etag=upload.etag,
            processed_photos=progress.processed_photos,
            failed_photos=progress.failed_photos,
        )

    async def _write_archive(
        self,
        job: ExportJob,
        photos: Sequence[Photo],
        missing_photo_ids: Sequence[str],
        sink: _ArchiveSink,
        channel: asyncio.Queue,
        upload_task: asyncio.Future,
        progress: ExportProgress,
    ) -> None:
        total = len(photos) + len(missing_photo_ids)
        compression = zipfile.ZIP_DEFLATED if self.compression_level > 0 else zipfile.ZIP_STORED
        try:
            archive = zipfile.ZipFile(sink, mode="w", compression=compression, allowZip64=True)
            archive.comment = f"Gallery Export - {total} photos".encode("utf-8")
        except (OSError, ValueError) as e:
            raise ArchiveError(f"Could not open archive: {e}") from e

        for photo_id in missing_photo_ids:
            self._write_placeholder(
                archive,
                f"ERROR_{photo_id[:8]}.txt",
                f"Error: photo {photo_id} no longer exists and was not exported\n",
            )
            progress.record_failure()
        await self._ship(sink.drain(), channel, upload_task)

        semaphore = asyncio.Semaphore(self.max_concurrent_downloads)
        batches = [
            photos[i:i + self.batch_size] for i in range(0, len(photos), self.batch_size)
        ]
        for index, batch in enumerate(batches, start=1):
            logger.info(
                f"[ArchiveBuilder] Export {job.id}: batch {index}/{len(batches)} "
                f"({len(batch)} photos)"
            )
            await self._process_batch(archive, batch, semaphore, sink, channel, upload_task, progress)

            if index < len(batches) and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        if progress.succeeded_photos == 0:
            raise ArchiveError(f"All {total} photos failed to export")

        logger.info(f"[ArchiveBuilder] Finalizing archive for export {job.id}")
        try:
            archive.close()
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            raise ArchiveError(f"Could not finalize archive: {e}") from e

        await self._ship(sink.drain(), channel, upload_task)
        await self._ship(None, channel, upload_task)

    async def _process_batch(
        self,
        archive: zipfile.ZipFile,
        batch: Sequence[Photo],
        semaphore: asyncio.Semaphore,
        sink: _ArchiveSink,
        channel: asyncio.Queue,
        upload_task: asyncio.Future,
        progress: ExportProgress,
    ) -> None:
        fetches = [asyncio.ensure_future(self._fetch_with_retry(photo, semaphore)) for photo in batch]
        try:
            for next_fetch in asyncio.as_completed(fetches):
                outcome = await next_fetch
                if outcome.error is None:
                    # Deflate and hashing run off the event loop; entries are still written one at a time
                    await asyncio.to_thread(self._write_entry, archive, outcome.photo, outcome.data)
                    progress.record_photo(len(outcome.data))
                else:
                    self._write_placeholder(
                        archive,
                        outcome.photo.placeholder_entry_name(),
                        f"Error: photo {outcome.photo.id} ({outcome.photo.original_name or outcome.photo.filename}) "
                        f"could not be exported after {outcome.error.attempts} attempt(s): "
                        f"{outcome.error.message}\n",
                    )
                    progress.record_failure()
                await self._ship(sink.drain(), channel, upload_task)
        finally:
            for fetch in fetches:
                if not fetch.done():
                    fetch.cancel()

    async def _fetch_with_retry(self, photo: Photo, semaphore: asyncio.Semaphore) -> _FetchOutcome:
        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                async with semaphore:
                    data = await asyncio.wait_for(
                        self._read_object(photo.storage_key), timeout=self.download_timeout
                    )
                return _FetchOutcome(photo=photo, data=data)
            except asyncio.TimeoutError:
                last_error = PhotoFetchError(
                    photo.id, f"Download timed out after {self.download_timeout}s", attempt
                )
            except StorageError as e:
                last_error = PhotoFetchError(photo.id, e.message, attempt)
            except OSError as e:
                last_error = PhotoFetchError(photo.id, str(e), attempt)

            logger.warning(
                f"[ArchiveBuilder] Photo {photo.id} attempt {attempt}/{self.max_attempts} "
                f"failed: {last_error.message}"
            )
            if attempt < self.max_attempts:
                await asyncio.sleep(self.backoff_delay(attempt))

        logger.error(
            f"[ArchiveBuilder] Photo {photo.id} failed after {self.max_attempts} attempts: "
            f"{last_error.message}"
        )
        return _FetchOutcome(photo=photo, error=last_error)

    def backoff_delay(self, attempt: int) -> float:
        """
        Exponential backoff delay before the next attempt.

        Formula: base * 2 ^ (attempt - 1), capped at retry_max_delay
        Examples with base 1s: attempt=1 -> 1s, attempt=2 -> 2s, attempt=3 -> 4s
        """
        return min(self.retry_base_delay * (2 ** (attempt - 1)), self.retry_max_delay)

    async def _read_object(self, key: str) -> bytes:
        buffer = bytearray()
        async for chunk in self.object_storage.get_object_stream(key):
            buffer += chunk
        return bytes(buffer)

    def _write_entry(self, archive: zipfile.ZipFile, photo: Photo, data: bytes) -> None:
        info = zipfile.ZipInfo(photo.archive_entry_name(), date_time=_zip_timestamp(photo.created_at))
        info.external_attr = 0o644 << 16
        self._writestr(archive, info, data)
        logger.debug(f"[ArchiveBuilder] Added {info.filename} ({len(data)} bytes)")

    def _write_placeholder(self, archive: zipfile.ZipFile, name: str, text: str) -> None:
        info = zipfile.ZipInfo(name, date_time=_zip_timestamp(None))
        info.external_attr = 0o644 << 16
        self._writestr(archive, info, text.encode("utf-8"))

    def _writestr(self, archive: zipfile.ZipFile, info: zipfile.ZipInfo, data: bytes) -> None:
        if self.compression_level > 0:
            compress_type, level = zipfile.ZIP_DEFLATED, self.compression_level
        else:
            compress_type, level = zipfile.ZIP_STORED, None
        try:
            archive.writestr(info, data, compress_type=compress_type, compresslevel=level)
        except (OSError, ValueError, zipfile.LargeZipFile) as e:
            raise ArchiveError(f"Could not add {info.filename} to archive: {e}") from e

    async def _ship(
        self, chunk: Optional[bytes], channel: asyncio.Queue, upload_task: asyncio.Future
    ) -> None:
        """Hand a chunk (None closes the stream) to the uploader, unless it already died"""
        if chunk is not None and not chunk:
            return
        put = asyncio.ensure_future(channel.put(chunk))
        done, _ = await asyncio.wait({put, upload_task}, return_when=asyncio.FIRST_COMPLETED)
        if put in done:
            return
        put.cancel()
        # Re-raises the uploader's StorageError, if that is why it stopped
        upload_task.result()
        raise UploadError("Upload ended before the archive was complete")


def _zip_timestamp(value: Optional[datetime]) -> tuple:
    value = value or datetime.now()
    if value.year < 1980:
        value = datetime(1980, 1, 1)
    return value.timetuple()[:6]
