"""
Unit tests for ExportWorker
"""
import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock
from libs.result import Error, Return
from src.adapter.services.in_memory_job_queue import InMemoryJobQueue
from src.worker.export_worker import ExportWorker
from tests.fakes import RecordingJobSource


class BlockingUseCase:
    """Process use case stand-in that runs until released"""

    def __init__(self, tracker):
        self.tracker = tracker

    async def execute(self, job_id):
        self.tracker["active"] += 1
        self.tracker["peak"] = max(self.tracker["peak"], self.tracker["active"])
        self.tracker["seen"].append(job_id)
        try:
            await self.tracker["release"].wait()
        finally:
            self.tracker["active"] -= 1
        return Return.ok(True)


@pytest.fixture
def tracker():
    return {"active": 0, "peak": 0, "seen": [], "release": asyncio.Event()}


@pytest.mark.asyncio
async def test_process_next_starts_up_to_free_slots(tracker):
    source = RecordingJobSource()
    for job_id in ("a", "b", "c"):
        await source.submit(job_id)
    worker = ExportWorker(source, lambda: BlockingUseCase(tracker), max_concurrent_jobs=2)

    started = await worker.process_next()
    await asyncio.sleep(0)

    assert started == 2
    assert worker.in_flight == 2
    assert source.submitted == ["c"]
    assert await worker.process_next() == 0

    tracker["release"].set()
    await worker.drain()
    assert worker.in_flight == 0
    assert tracker["peak"] == 2


@pytest.mark.asyncio
async def test_duplicate_delivery_of_running_job_is_ignored(tracker):
    source = RecordingJobSource()
    await source.submit("a")
    worker = ExportWorker(source, lambda: BlockingUseCase(tracker), max_concurrent_jobs=3)
    await worker.process_next()

    await source.submit("a")
    started = await worker.process_next()

    assert started == 0
    assert worker.in_flight == 1
    tracker["release"].set()
    await worker.drain()
    assert tracker["seen"] == ["a"]


@pytest.mark.asyncio
async def test_start_processes_queue_within_concurrency_cap(tracker):
    queue = InMemoryJobQueue(idle_wait=0.01)
    for index in range(5):
        await queue.submit(f"job-{index}")
    worker = ExportWorker(queue, lambda: BlockingUseCase(tracker), max_concurrent_jobs=2, poll_interval=0)

    runner = asyncio.ensure_future(worker.start())
    await asyncio.sleep(0.05)
    assert tracker["active"] == 2

    tracker["release"].set()
    for _ in range(100):
        if len(tracker["seen"]) == 5 and worker.in_flight == 0:
            break
        await asyncio.sleep(0.01)

    await worker.stop(timeout=1)
    await asyncio.wait_for(runner, timeout=1)

    assert sorted(tracker["seen"]) == [f"job-{index}" for index in range(5)]
    assert tracker["peak"] == 2


@pytest.mark.asyncio
async def test_stop_cancels_jobs_after_timeout(tracker):
    source = RecordingJobSource()
    await source.submit("slow")
    worker = ExportWorker(source, lambda: BlockingUseCase(tracker))
    await worker.process_next()
    await asyncio.sleep(0)

    await worker.stop(timeout=0.01)

    assert worker.in_flight == 0
    assert tracker["active"] == 0


@pytest.mark.asyncio
async def test_failed_job_does_not_stop_worker():
    source = RecordingJobSource()
    await source.submit("broken")
    await source.submit("crashing")
    use_case = MagicMock()
    use_case.execute = AsyncMock(side_effect=[
        Return.err(Error(code="EXPORT_FAILED", message="boom")),
        RuntimeError("unexpected"),
    ])
    worker = ExportWorker(source, lambda: use_case, max_concurrent_jobs=2)

    await worker.process_next()
    await worker.drain()

    assert use_case.execute.await_count == 2
    assert worker.in_flight == 0
