"""Get Export Status Use Case

Retrieves the progress of an export job. Callers are expected to throttle
polling themselves (about once per 500ms per job at most).
"""
from typing import Optional
from libs.result import Result, Error, Return
from src.app.services.unit_of_work import UnitOfWork
from .dtos import ExportJobDTO


class GetExportStatusUseCase:
    """
    Use case: Get Export Status

    Returns the current status of an export job with its derived percent.
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(self, job_id: str, album_id: Optional[str] = None) -> Result[ExportJobDTO]:
        """
        Get the status of an export job

        Args:
            job_id: The export job ID
            album_id: When given, the job must belong to this album

        Returns:
            Result[ExportJobDTO]: Job status with progress counters
        """
        async with self.uow:
            export_job = await self.uow.export_jobs.get_by_id(job_id)
            if not export_job or (album_id is not None and export_job.album_id != album_id):
                return Return.err(Error(
                    code="EXPORT_JOB_NOT_FOUND",
                    message="Export job not found"
                ))

            return Return.ok(ExportJobDTO.from_entity(export_job))
