"""Job source for a standalone runner: queued rows in the job table are the queue."""
import logging
from typing import List
from src.app.services.job_source import JobSource
from src.app.services.unit_of_work import UnitOfWork
from src.domain.enums import ExportJobStatus

logger = logging.getLogger(__name__)


class StorePollingJobSource(JobSource):
    """Polls the job table for queued exports, oldest first"""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def submit(self, job_id: str) -> None:
        # The row itself is the announcement; the runner finds it on its next poll
        logger.debug(f"[StorePollingJobSource] Job {job_id} will be picked up by polling")

    async def next_job_ids(self, limit: int) -> List[str]:
        if limit <= 0:
            return []
        async with self.uow:
            jobs = await self.uow.export_jobs.find_by_status(ExportJobStatus.queued, limit=limit)
        return [job.id for job in jobs]
