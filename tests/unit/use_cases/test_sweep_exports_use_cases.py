"""
Unit tests for the expiry and failed-job sweeps
"""
import pytest
from datetime import datetime, timedelta, timezone
from src.app.use_cases.exports import SweepExpiredExportsUseCase, SweepFailedExportsUseCase
from src.domain.enums import ExportJobStatus
from src.domain.export_job import ExportJob
from tests.fakes import FakeUnitOfWork, InMemoryObjectStorage

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def add_job(uow, job_id, status, **overrides):
    values = dict(
        id=job_id,
        album_id="album-1",
        object_key=f"album-1/exports/{job_id}.zip",
        status=status,
        total_photos=1,
        total_bytes=100,
    )
    values.update(overrides)
    return uow.export_jobs.add(ExportJob(**values))


@pytest.fixture
def uow():
    return FakeUnitOfWork()


@pytest.fixture
def storage():
    return InMemoryObjectStorage()


def add_ready(uow, storage, job_id, expires_at):
    job = add_job(
        uow, job_id, ExportJobStatus.ready,
        download_url=f"https://storage.test/{job_id}", checksum="c", expires_at=expires_at,
    )
    storage.objects[job.object_key] = b"zip"
    return job


class TestSweepExpired:

    @pytest.mark.asyncio
    async def test_lapsed_archive_is_deleted_and_job_expired(self, uow, storage):
        lapsed = add_ready(uow, storage, "lapsed", NOW - timedelta(minutes=1))
        fresh = add_ready(uow, storage, "fresh", NOW + timedelta(hours=1))

        result = await SweepExpiredExportsUseCase(uow, storage).execute(now=NOW)

        assert result.value == 1
        job = uow.export_jobs.row("lapsed")
        assert job.status == ExportJobStatus.expired
        assert job.download_url is None
        assert job.error == "Download link expired and file cleaned up"
        assert lapsed.object_key not in storage.objects
        assert fresh.object_key in storage.objects
        assert uow.export_jobs.row("fresh").status == ExportJobStatus.ready

    @pytest.mark.asyncio
    async def test_delete_failure_still_expires_job(self, uow, storage):
        add_ready(uow, storage, "lapsed", NOW - timedelta(minutes=1))
        storage.fail_delete = True

        result = await SweepExpiredExportsUseCase(uow, storage).execute(now=NOW)

        assert result.value == 1
        job = uow.export_jobs.row("lapsed")
        assert job.status == ExportJobStatus.expired
        assert job.download_url is None
        assert job.checksum is None

    @pytest.mark.asyncio
    async def test_undeletable_archive_does_not_block_later_jobs(self, uow, storage):
        stuck = add_ready(uow, storage, "stuck", NOW - timedelta(hours=2))
        add_ready(uow, storage, "normal", NOW - timedelta(hours=1))
        storage.undeletable_keys.add(stuck.object_key)
        sweep = SweepExpiredExportsUseCase(uow, storage, batch_size=1)

        first = await sweep.execute(now=NOW)
        second = await sweep.execute(now=NOW)

        assert (first.value, second.value) == (1, 1)
        assert uow.export_jobs.row("stuck").status == ExportJobStatus.expired
        assert uow.export_jobs.row("normal").status == ExportJobStatus.expired
        assert storage.deleted_keys == ["album-1/exports/normal.zip"]

    @pytest.mark.asyncio
    async def test_nothing_to_sweep(self, uow, storage):
        add_job(uow, "queued", ExportJobStatus.queued)

        result = await SweepExpiredExportsUseCase(uow, storage).execute(now=NOW)

        assert result.value == 0
        assert storage.deleted_keys == []


class TestSweepFailed:

    @pytest.mark.asyncio
    async def test_old_failed_jobs_are_deleted(self, uow, storage):
        add_job(uow, "old-failed", ExportJobStatus.failed, created_at=NOW - timedelta(days=8))
        add_job(uow, "recent-failed", ExportJobStatus.failed, created_at=NOW - timedelta(days=2))
        add_job(uow, "old-ready", ExportJobStatus.ready, created_at=NOW - timedelta(days=30))

        result = await SweepFailedExportsUseCase(uow, storage, retention_days=7).execute(now=NOW)

        assert result.value == 1
        assert uow.export_jobs.row("old-failed") is None
        assert uow.export_jobs.row("recent-failed") is not None
        assert uow.export_jobs.row("old-ready") is not None
        assert storage.deleted_keys == ["album-1/exports/old-failed.zip"]

    @pytest.mark.asyncio
    async def test_retention_override(self, uow):
        add_job(uow, "recent-failed", ExportJobStatus.failed, created_at=NOW - timedelta(days=2))

        result = await SweepFailedExportsUseCase(uow).execute(now=NOW, older_than_days=1)

        assert result.value == 1

    @pytest.mark.asyncio
    async def test_record_deleted_when_leftover_object_cannot_be_deleted(self, uow, storage):
        add_job(uow, "old-failed", ExportJobStatus.failed, created_at=NOW - timedelta(days=8))
        storage.fail_delete = True

        result = await SweepFailedExportsUseCase(uow, storage).execute(now=NOW)

        assert result.value == 1
        assert uow.export_jobs.row("old-failed") is None
