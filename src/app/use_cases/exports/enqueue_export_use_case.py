"""Enqueue Export Use Case

Validates an export request and creates (or reuses) an export job.
"""
import logging
import re
import time
from typing import List, Optional, Sequence
from libs.result import Result, Error, Return
from src.app.services.audit_service import AuditService
from src.app.services.job_source import JobSource
from src.app.services.unit_of_work import UnitOfWork
from src.domain.enums import ExportJobStatus, PermissionKind, REUSABLE_EXPORT_STATUSES
from src.domain.base import utc_now
from src.domain.export_job import ExportJob
from src.domain.photo import Photo
from .dtos import ExportJobDTO

logger = logging.getLogger(__name__)

_UNSAFE_TITLE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def build_object_key(album_id: str, album_title: Optional[str], now_ms: Optional[int] = None) -> str:
    """Deterministic archive location: album prefix, creation time, sanitized title"""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    sanitized_title = _UNSAFE_TITLE_CHARS.sub("_", album_title or "album")[:80]
    return f"{album_id}/exports/{now_ms}_{sanitized_title}.zip"


class EnqueueExportUseCase:
    """
    Use case: Enqueue Export

    1. Checks the requester holds the download permission on the album
    2. Resolves the photo set (explicit ids restricted to the album, or all photos)
    3. Enforces the photo count and byte size ceilings
    4. Returns an identical in-flight or ready job instead of duplicating work
    5. Otherwise persists a queued job and hands it to the job source
    """

    def __init__(
        self,
        uow: UnitOfWork,
        job_source: JobSource,
        audit_service: AuditService,
        max_photos: int = 5000,
        max_total_bytes: int = 6 * 1024 * 1024 * 1024,
    ):
        self.uow = uow
        self.job_source = job_source
        self.audit_service = audit_service
        self.max_photos = max_photos
        self.max_total_bytes = max_total_bytes

    async def execute(
        self,
        album_id: str,
        photo_ids: Optional[Sequence[str]],
        requester_id: str,
    ) -> Result[ExportJobDTO]:
        """
        Enqueue an export of an album

        Args:
            album_id: The album to export from
            photo_ids: Photos to include; None or empty exports the whole album
            requester_id: The user asking for the export

        Returns:
            Result[ExportJobDTO]: The new or reused job
        """
        async with self.uow:
            allowed = await self.uow.permissions.has_permission(
                requester_id, album_id, PermissionKind.download
            )
            if not allowed:
                return Return.err(Error(
                    code="FORBIDDEN",
                    message="Access denied"
                ))

            photos = await self._resolve_photos(album_id, photo_ids)
            if not photos:
                return Return.err(Error(
                    code="NOT_FOUND",
                    message="No photos found for export"
                ))

            total_photos = len(photos)
            if total_photos > self.max_photos:
                return Return.err(Error(
                    code="LIMIT_EXCEEDED",
                    message="Export too large (photo count exceeds limit)",
                    details={"total_photos": total_photos, "max_photos": self.max_photos},
                ))

            total_bytes = sum(photo.size for photo in photos)
            if total_bytes > self.max_total_bytes:
                return Return.err(Error(
                    code="LIMIT_EXCEEDED",
                    message="Export too large (total bytes exceeds limit)",
                    details={"total_bytes": total_bytes, "max_total_bytes": self.max_total_bytes},
                ))

            existing = await self.uow.export_jobs.find_duplicate(
                album_id, total_photos, total_bytes, REUSABLE_EXPORT_STATUSES
            )
            if existing and not self._is_stale(existing):
                logger.info(
                    f"[EnqueueExport] Reusing export {existing.id} ({existing.status_value}) "
                    f"for album {album_id}"
                )
                return Return.ok(ExportJobDTO.from_entity(existing))

            album = await self.uow.albums.get_by_id(album_id)
            export_job = ExportJob(
                album_id=album_id,
                requested_by=requester_id,
                photo_ids=[photo.id for photo in photos],
                status=ExportJobStatus.queued,
                object_key=build_object_key(album_id, album.title if album else None),
                total_photos=total_photos,
                total_bytes=total_bytes,
            )
            export_job = await self.uow.export_jobs.create(export_job)
            await self.uow.commit()

        await self.job_source.submit(export_job.id)
        logger.info(
            f"[EnqueueExport] Queued export {export_job.id} for album {album_id} "
            f"({total_photos} photos, {total_bytes} bytes)"
        )

        await self.audit_service.log_event(
            event_type="export_requested",
            user_id=requester_id,
            resource_type="album_export",
            resource_id=export_job.id,
            metadata={"album_id": album_id, "total_photos": total_photos, "total_bytes": total_bytes},
        )

        return Return.ok(ExportJobDTO.from_entity(export_job))

    async def _resolve_photos(self, album_id: str, photo_ids: Optional[Sequence[str]]) -> List[Photo]:
        if not photo_ids:
            return await self.uow.photos.get_by_album(album_id)

        requested = list(dict.fromkeys(photo_ids))
        found = {
            photo.id: photo
            for photo in await self.uow.photos.get_by_ids(requested)
            if photo.album_id == album_id
        }
        return [found[photo_id] for photo_id in requested if photo_id in found]

    def _is_stale(self, export_job: ExportJob) -> bool:
        """A ready job whose link already lapsed is waiting for the sweeper, not reusable"""
        return (
            export_job.status == ExportJobStatus.ready
            and export_job.is_download_expired(utc_now())
        )
