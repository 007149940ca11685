"""Export Worker

Background worker that pulls export job ids from a job source and processes
up to `max_concurrent_jobs` of them at a time.
"""
import asyncio
import logging
from typing import Callable, Dict, Optional
from src.app.services.job_source import JobSource
from src.app.use_cases.exports import ProcessExportJobUseCase

logger = logging.getLogger(__name__)


class ExportWorker:
    """
    Background worker that processes export jobs

    Job ids may be delivered more than once; an id already running in this
    worker is ignored and the claim inside ProcessExportJobUseCase keeps other
    workers from building the same job.
    """

    def __init__(
        self,
        job_source: JobSource,
        use_case_factory: Callable[[], ProcessExportJobUseCase],
        max_concurrent_jobs: int = 2,
        poll_interval: float = 5,
    ):
        """
        Initialize ExportWorker.

        Args:
            job_source: Where queued job ids come from
            use_case_factory: Builds a ProcessExportJobUseCase with its own
                unit of work for each job
            max_concurrent_jobs: Jobs processed in parallel
            poll_interval: Seconds to wait when no job was picked up
        """
        self.job_source = job_source
        self.use_case_factory = use_case_factory
        self.max_concurrent_jobs = max(1, max_concurrent_jobs)
        self.poll_interval = poll_interval
        self.running = False
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._wakeup = asyncio.Event()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def start(self):
        """
        Start the export worker.

        Runs until stop() is called.
        """
        self.running = True
        self._wakeup.clear()
        logger.info(
            f"[ExportWorker] Started (max {self.max_concurrent_jobs} concurrent jobs, "
            f"poll every {self.poll_interval}s)"
        )

        while self.running:
            try:
                started = await self.process_next()
            except Exception as e:
                logger.error(f"[ExportWorker] Error fetching export jobs: {e}")
                started = 0

            if not self.running:
                break
            if self.in_flight >= self.max_concurrent_jobs:
                # Wait for a free slot
                await asyncio.wait(
                    set(self._in_flight.values()), return_when=asyncio.FIRST_COMPLETED
                )
            elif not started:
                await self._idle()

    async def stop(self, timeout: Optional[float] = None):
        """
        Stop the export worker.

        Waits up to `timeout` seconds for running jobs, then cancels them;
        a cancelled job is marked failed by the use case.
        """
        self.running = False
        self._wakeup.set()
        if self._in_flight:
            logger.info(f"[ExportWorker] Waiting for {self.in_flight} running export(s)")
            tasks = set(self._in_flight.values())
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        logger.info("[ExportWorker] Stopped")

    async def process_next(self) -> int:
        """
        Take as many job ids as there are free slots and start them.

        Returns:
            Number of jobs started
        """
        free_slots = self.max_concurrent_jobs - self.in_flight
        if free_slots <= 0:
            return 0

        job_ids = await self.job_source.next_job_ids(free_slots)
        started = 0
        for job_id in job_ids:
            if job_id in self._in_flight:
                continue
            task = asyncio.ensure_future(self._run_job(job_id))
            self._in_flight[job_id] = task
            task.add_done_callback(lambda _task, job_id=job_id: self._in_flight.pop(job_id, None))
            started += 1

        if started:
            logger.info(f"[ExportWorker] Started {started} export job(s), {self.in_flight} running")
        return started

    async def drain(self):
        """Wait until every running job has finished"""
        while self._in_flight:
            await asyncio.gather(*self._in_flight.values(), return_exceptions=True)

    async def _run_job(self, job_id: str):
        use_case = self.use_case_factory()
        try:
            result = await use_case.execute(job_id)
        except Exception as e:
            logger.exception(f"[ExportWorker] Unexpected error processing export {job_id}: {e}")
            return

        if result.is_err():
            logger.error(
                f"[ExportWorker] Export {job_id} failed: {result.error.code} - {result.error.message}"
            )

    async def _idle(self):
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            pass
