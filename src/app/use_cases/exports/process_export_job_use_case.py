"""Process Export Job Use Case

Drives one queued export job through processing to ready or failed.
"""
import asyncio
import logging
from typing import List, Tuple
from libs.result import Result, Error, Return
from src.app.services.archive_builder import ArchiveBuilder, ArchiveResult
from src.app.services.object_storage import ObjectStorage, StorageError
from src.app.services.unit_of_work import UnitOfWork
from src.domain.enums import ExportJobStatus
from src.domain.export_job import ExportJob
from src.domain.export_progress import ExportProgress
from src.domain.photo import Photo

logger = logging.getLogger(__name__)


class ProcessExportJobUseCase:
    """
    Use case: Process Export Job

    1. Claims the job (queued -> processing) with a conditional update, so a
       job delivered twice or seen by two workers is only built once
    2. Resolves the photo metadata in the job's photo order
    3. Builds and uploads the archive while a ticker patches progress
    4. Signs a download URL and marks the job ready, or marks it failed and
       removes any partial archive
    """

    def __init__(
        self,
        uow: UnitOfWork,
        object_storage: ObjectStorage,
        archive_builder: ArchiveBuilder,
        url_expiry_seconds: int = 12 * 3600,
        progress_interval: float = 1.0,
        progress_write_timeout: float = 10.0,
    ):
        self.uow = uow
        self.object_storage = object_storage
        self.archive_builder = archive_builder
        self.url_expiry_seconds = url_expiry_seconds
        self.progress_interval = progress_interval
        self.progress_write_timeout = progress_write_timeout

    async def execute(self, job_id: str) -> Result[bool]:
        """
        Process an export job

        Args:
            job_id: The export job ID to process

        Returns:
            Result[bool]: True if the job became ready, False if it was skipped
        """
        async with self.uow:
            export_job = await self.uow.export_jobs.get_by_id(job_id)
            if not export_job:
                logger.error(f"[ProcessExport] Job not found: {job_id}")
                return Return.err(Error(
                    code="EXPORT_JOB_NOT_FOUND",
                    message="Export job not found"
                ))

            # Skip if not queued
            if export_job.status != ExportJobStatus.queued:
                logger.info(
                    f"[ProcessExport] Job {job_id} is not queued, status: {export_job.status_value}"
                )
                return Return.ok(False)

            changes = export_job.start_processing()
            claimed = await self.uow.export_jobs.patch(
                job_id, changes, expected_status=ExportJobStatus.queued
            )
            if not claimed:
                await self.uow.rollback()
                logger.info(f"[ProcessExport] Job {job_id} was claimed by another worker")
                return Return.ok(False)
            await self.uow.commit()

        logger.info(
            f"[ProcessExport] Starting export {job_id} for album {export_job.album_id} "
            f"({export_job.total_photos} photos)"
        )
        progress = ExportProgress(
            total_photos=export_job.total_photos,
            total_bytes=export_job.total_bytes,
            started_at=export_job.started_at,
        )

        # Long-running work happens outside of any transaction
        try:
            photos, missing_ids = await self._load_photos(export_job)
            if missing_ids:
                logger.warning(
                    f"[ProcessExport] {len(missing_ids)} photo(s) of export {job_id} no longer exist"
                )
            result = await self._build_with_progress(export_job, photos, missing_ids, progress)
            download_url, expires_at = await self.object_storage.generate_signed_url(
                export_job.object_key, self.url_expiry_seconds
            )
        except asyncio.CancelledError:
            await self._fail(export_job, "interrupted by worker shutdown", progress)
            raise
        except Exception as e:
            await self._fail(export_job, e, progress)
            return Return.err(Error(
                code="EXPORT_FAILED",
                message=str(e)
            ))

        changes = export_job.complete(
            download_url=download_url,
            checksum=result.checksum,
            expires_at=expires_at,
            archive_bytes=result.archive_bytes,
            processed_photos=result.processed_photos,
            processed_bytes=progress.processed_bytes,
            failed_photos=result.failed_photos,
        )
        async with self.uow:
            await self.uow.export_jobs.patch(job_id, changes)
            await self.uow.commit()

        logger.info(
            f"[ProcessExport] Export {job_id} ready: "
            f"{result.processed_photos - result.failed_photos}/{export_job.total_photos} photos "
            f"({result.failed_photos} failed), {result.archive_bytes} bytes"
        )
        return Return.ok(True)

    async def _load_photos(self, export_job: ExportJob) -> Tuple[List[Photo], List[str]]:
        async with self.uow:
            found = {
                photo.id: photo
                for photo in await self.uow.photos.get_by_ids(export_job.photo_ids)
            }
        photos = [found[photo_id] for photo_id in export_job.photo_ids if photo_id in found]
        missing_ids = [photo_id for photo_id in export_job.photo_ids if photo_id not in found]
        return photos, missing_ids

    async def _build_with_progress(
        self,
        export_job: ExportJob,
        photos: List[Photo],
        missing_ids: List[str],
        progress: ExportProgress,
    ) -> ArchiveResult:
        stop = asyncio.Event()
        reporter = asyncio.ensure_future(self._report_progress(export_job, progress, stop))
        try:
            return await self.archive_builder.build(
                export_job, photos, progress, missing_photo_ids=missing_ids
            )
        finally:
            stop.set()
            await reporter

    async def _report_progress(
        self, export_job: ExportJob, progress: ExportProgress, stop: asyncio.Event
    ) -> None:
        """Patch counters and ETA every `progress_interval` seconds until stopped"""
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.progress_interval)
                return
            except asyncio.TimeoutError:
                pass

            changes = export_job.record_progress(
                progress.processed_photos, progress.processed_bytes, progress.eta_seconds()
            )
            # The build awaits this ticker before returning, so each write is bounded
            try:
                await asyncio.wait_for(
                    self._write_progress(export_job.id, changes),
                    timeout=self.progress_write_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    f"[ProcessExport] Progress update for {export_job.id} timed out "
                    f"after {self.progress_write_timeout}s"
                )
            except Exception as e:
                logger.warning(f"[ProcessExport] Progress update failed for {export_job.id}: {e}")

    async def _write_progress(self, job_id: str, changes) -> None:
        async with self.uow:
            await self.uow.export_jobs.patch(job_id, changes)
            await self.uow.commit()

    async def _fail(self, export_job: ExportJob, error, progress: ExportProgress) -> None:
        logger.error(f"[ProcessExport] Export {export_job.id} failed: {error}")
        changes = export_job.fail(
            f"Export failed: {error}", processed_photos=progress.processed_photos
        )
        try:
            async with self.uow:
                await self.uow.export_jobs.patch(export_job.id, changes)
                await self.uow.commit()
        except Exception as e:
            logger.error(f"[ProcessExport] Could not record failure of {export_job.id}: {e}")

        # Best effort: an aborted multipart upload normally leaves nothing behind
        try:
            await self.object_storage.delete_object(export_job.object_key)
        except StorageError as e:
            logger.warning(
                f"[ProcessExport] Could not delete partial archive {export_job.object_key}: {e.message}"
            )
