"""Sweep Failed Exports Use Case"""
import logging
from datetime import datetime, timedelta
from typing import Optional
from libs.result import Result, Return
from src.app.services.object_storage import ObjectStorage, StorageError
from src.app.services.unit_of_work import UnitOfWork
from src.domain.base import utc_now

logger = logging.getLogger(__name__)


class SweepFailedExportsUseCase:
    """
    Hard-deletes failed export jobs older than the retention window

    A failed job should not have an archive, but a crash between upload and
    the final status write can leave one behind. It is removed first when
    possible; a storage error does not keep the record alive.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        object_storage: Optional[ObjectStorage] = None,
        retention_days: int = 7,
        batch_size: int = 100,
    ):
        self.uow = uow
        self.object_storage = object_storage
        self.retention_days = retention_days
        self.batch_size = batch_size

    async def execute(
        self, now: Optional[datetime] = None, older_than_days: Optional[int] = None
    ) -> Result[int]:
        """
        Returns:
            Result[int]: Number of job records deleted
        """
        days = self.retention_days if older_than_days is None else older_than_days
        cutoff = (now or utc_now()) - timedelta(days=days)

        async with self.uow:
            old_jobs = await self.uow.export_jobs.get_failed_before(cutoff, limit=self.batch_size)

        deleted = 0
        for export_job in old_jobs:
            if self.object_storage is not None:
                try:
                    await self.object_storage.delete_object(export_job.object_key)
                except StorageError as e:
                    logger.warning(
                        f"[SweepFailed] Could not delete {export_job.object_key}, "
                        f"removing the record anyway: {e.message}"
                    )

            async with self.uow:
                if await self.uow.export_jobs.delete(export_job.id):
                    deleted += 1
                await self.uow.commit()

        if deleted:
            logger.info(f"[SweepFailed] Deleted {deleted} failed export(s) created before {cutoff}")
        return Return.ok(deleted)
