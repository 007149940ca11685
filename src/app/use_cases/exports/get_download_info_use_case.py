"""Get Download Info Use Case

Returns the signed URL and fingerprint of a ready export archive.
"""
from datetime import datetime
from typing import Optional
from libs.result import Result, Error, Return
from src.app.services.audit_service import AuditService
from src.app.services.unit_of_work import UnitOfWork
from src.domain.base import utc_now
from src.domain.enums import ExportJobStatus
from .dtos import DownloadInfoDTO


class GetDownloadInfoUseCase:
    """
    Use case: Get Download Info

    Only ready jobs inside their download window yield a link. A partially
    successful job carries its error note next to the link so callers can
    show both.
    """

    def __init__(self, uow: UnitOfWork, audit_service: AuditService):
        self.uow = uow
        self.audit_service = audit_service

    async def execute(
        self,
        job_id: str,
        album_id: Optional[str] = None,
        requester_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Result[DownloadInfoDTO]:
        """
        Get download information for an export job

        Args:
            job_id: The export job ID
            album_id: When given, the job must belong to this album
            requester_id: User fetching the link, recorded in the audit trail
            now: Reference time for the expiry check

        Returns:
            Result[DownloadInfoDTO]: URL, checksum and expiry
        """
        now = now or utc_now()
        async with self.uow:
            export_job = await self.uow.export_jobs.get_by_id(job_id)

        if not export_job or (album_id is not None and export_job.album_id != album_id):
            return Return.err(Error(
                code="EXPORT_JOB_NOT_FOUND",
                message="Export job not found"
            ))

        if export_job.status == ExportJobStatus.expired:
            return Return.err(Error(
                code="GONE",
                message="Download link has expired",
                reason=export_job.error,
            ))

        if export_job.status != ExportJobStatus.ready:
            return Return.err(Error(
                code="NOT_READY",
                message="Export not ready",
                details={"status": export_job.status_value, "percent": export_job.progress_percent},
            ))

        if not export_job.download_url or export_job.is_download_expired(now):
            return Return.err(Error(
                code="GONE",
                message="Download link has expired",
            ))

        if requester_id:
            await self.audit_service.log_event(
                event_type="export_download_requested",
                user_id=requester_id,
                resource_type="album_export",
                resource_id=export_job.id,
                metadata={"album_id": export_job.album_id},
            )

        return Return.ok(DownloadInfoDTO(
            export_job_id=export_job.id,
            download_url=export_job.download_url,
            checksum=export_job.checksum,
            expires_at=export_job.expires_at,
            total_photos=export_job.total_photos,
            failed_photos=export_job.failed_photos,
            file_size=export_job.archive_bytes,
            error=export_job.error,
        ))
