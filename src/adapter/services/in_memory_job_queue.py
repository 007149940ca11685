"""In-process job queue

Used when the export worker runs inside the API process. Ids are lost on
restart; queued rows are re-submitted from the job table at startup.
"""
import asyncio
from typing import List
from src.app.services.job_source import JobSource


class InMemoryJobQueue(JobSource):
    """asyncio.Queue backed job source"""

    def __init__(self, idle_wait: float = 0.5):
        """
        Args:
            idle_wait: How long next_job_ids blocks on an empty queue
        """
        self.idle_wait = idle_wait
        self._queue: asyncio.Queue = asyncio.Queue()

    async def submit(self, job_id: str) -> None:
        await self._queue.put(job_id)

    async def next_job_ids(self, limit: int) -> List[str]:
        if limit <= 0:
            return []
        try:
            first = await asyncio.wait_for(self._queue.get(), timeout=self.idle_wait)
        except asyncio.TimeoutError:
            return []

        job_ids = [first]
        while len(job_ids) < limit and not self._queue.empty():
            job_ids.append(self._queue.get_nowait())
        return job_ids

    def qsize(self) -> int:
        return self._queue.qsize()
