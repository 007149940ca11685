"""Sweep Expired Exports Use Case

Deletes archives whose download link has lapsed and marks their jobs expired.
"""
import logging
from datetime import datetime
from typing import Optional
from libs.result import Result, Return
from src.app.services.object_storage import ObjectStorage, StorageError
from src.app.services.unit_of_work import UnitOfWork
from src.domain.base import utc_now
from src.domain.enums import ExportJobStatus

logger = logging.getLogger(__name__)


class SweepExpiredExportsUseCase:
    """
    Use case: Sweep Expired Exports

    For each ready job whose expires_at has passed: delete the archive object,
    then move the job to expired. Deletion is best effort; a job whose object
    cannot be removed is still expired so it does not hold up later batches.
    """

    def __init__(self, uow: UnitOfWork, object_storage: ObjectStorage, batch_size: int = 50):
        self.uow = uow
        self.object_storage = object_storage
        self.batch_size = batch_size

    async def execute(self, now: Optional[datetime] = None) -> Result[int]:
        """
        Returns:
            Result[int]: Number of jobs moved to expired
        """
        now = now or utc_now()

        async with self.uow:
            expired_jobs = await self.uow.export_jobs.get_expired(now, limit=self.batch_size)

        if not expired_jobs:
            return Return.ok(0)

        logger.info(f"[SweepExpired] Found {len(expired_jobs)} expired export(s)")

        swept = 0
        for export_job in expired_jobs:
            try:
                await self.object_storage.delete_object(export_job.object_key)
            except StorageError as e:
                logger.error(
                    f"[SweepExpired] Failed to delete {export_job.object_key} "
                    f"for export {export_job.id}, expiring anyway: {e.message}"
                )

            changes = export_job.expire()
            async with self.uow:
                updated = await self.uow.export_jobs.patch(
                    export_job.id, changes, expected_status=ExportJobStatus.ready
                )
                if not updated:
                    await self.uow.rollback()
                    continue
                await self.uow.commit()

            swept += 1
            logger.info(f"[SweepExpired] Export {export_job.id} expired")

        return Return.ok(swept)
