"""Cancel Export Use Case

Prevents a queued export from starting. Jobs already processing run to
completion; there is no mid-flight cancellation.
"""
import logging
from libs.result import Result, Error, Return
from src.app.services.unit_of_work import UnitOfWork
from src.domain.enums import ExportJobStatus
from .dtos import ExportJobDTO

logger = logging.getLogger(__name__)


class CancelExportUseCase:

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(self, job_id: str, album_id: str) -> Result[ExportJobDTO]:
        """
        Cancel a queued export job

        Args:
            job_id: The export job ID
            album_id: The album the job must belong to

        Returns:
            Result[ExportJobDTO]: The cancelled job
        """
        async with self.uow:
            export_job = await self.uow.export_jobs.get_by_id(job_id)
            if not export_job or export_job.album_id != album_id:
                return Return.err(Error(
                    code="EXPORT_JOB_NOT_FOUND",
                    message="Export job not found"
                ))

            if export_job.status != ExportJobStatus.queued:
                return Return.err(Error(
                    code="INVALID_JOB_STATUS",
                    message=f"Job status is {export_job.status_value}, only queued exports can be cancelled"
                ))

            changes = export_job.cancel()
            # A worker may have claimed the job since it was read
            cancelled = await self.uow.export_jobs.patch(
                job_id, changes, expected_status=ExportJobStatus.queued
            )
            if not cancelled:
                await self.uow.rollback()
                return Return.err(Error(
                    code="INVALID_JOB_STATUS",
                    message="Export already started"
                ))
            await self.uow.commit()

        logger.info(f"[CancelExport] Cancelled export {job_id}")
        return Return.ok(ExportJobDTO.from_entity(export_job))
