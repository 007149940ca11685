"""
Unit tests for EnqueueExportUseCase
"""
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock
from src.app.use_cases.exports import EnqueueExportUseCase, build_object_key
from src.domain.album import Album
from src.domain.enums import ExportJobStatus, PermissionKind
from tests.fakes import FakeUnitOfWork, RecordingJobSource, make_photo

ALBUM_ID = "album-1"
OTHER_ALBUM_ID = "album-2"
USER_ID = "user-1"
MB = 1024 * 1024


@pytest.fixture
def photos():
    return [
        make_photo("p1", ALBUM_ID, 1 * MB),
        make_photo("p2", ALBUM_ID, 2 * MB),
        make_photo("p3", ALBUM_ID, 1 * MB),
        make_photo("foreign", OTHER_ALBUM_ID, 5 * MB),
    ]


@pytest.fixture
def uow(photos):
    return FakeUnitOfWork(
        photos=photos,
        albums=[Album(id=ALBUM_ID, title="Summer Trip 2024!")],
        grants=[(USER_ID, ALBUM_ID, PermissionKind.download)],
    )


@pytest.fixture
def job_source():
    return RecordingJobSource()


@pytest.fixture
def audit_service():
    service = MagicMock()
    service.log_event = AsyncMock()
    return service


@pytest.fixture
def use_case(uow, job_source, audit_service):
    return EnqueueExportUseCase(uow, job_source, audit_service)


@pytest.mark.asyncio
async def test_enqueue_whole_album(use_case, uow, job_source, audit_service):
    """Without photo ids every photo of the album is exported"""
    result = await use_case.execute(ALBUM_ID, None, USER_ID)

    assert result.is_ok()
    job = result.value
    assert job.status == "queued"
    assert job.total_photos == 3
    assert job.total_bytes == 4 * MB
    assert job.processed_photos == 0
    assert job.percent == 0
    assert job.object_key.startswith(f"{ALBUM_ID}/exports/")
    assert job.object_key.endswith("_Summer_Trip_2024_.zip")

    stored = uow.export_jobs.row(job.export_job_id)
    assert stored.photo_ids == ["p1", "p2", "p3"]
    assert stored.requested_by == USER_ID
    assert job_source.submitted == [job.export_job_id]
    audit_service.log_event.assert_awaited_once()
    assert audit_service.log_event.call_args.kwargs["event_type"] == "export_requested"


@pytest.mark.asyncio
async def test_enqueue_is_idempotent_while_in_flight(use_case, job_source):
    first = await use_case.execute(ALBUM_ID, None, USER_ID)
    second = await use_case.execute(ALBUM_ID, None, USER_ID)

    assert second.value.export_job_id == first.value.export_job_id
    assert job_source.submitted == [first.value.export_job_id]


@pytest.mark.asyncio
async def test_enqueue_reuses_ready_job(use_case, uow):
    first = await use_case.execute(ALBUM_ID, None, USER_ID)
    await uow.export_jobs.patch(first.value.export_job_id, {
        "status": ExportJobStatus.ready,
        "download_url": "https://storage.test/x.zip",
        "expires_at": datetime.now(timezone.utc) + timedelta(hours=1),
    })

    second = await use_case.execute(ALBUM_ID, None, USER_ID)

    assert second.value.export_job_id == first.value.export_job_id
    assert second.value.status == "ready"


@pytest.mark.asyncio
async def test_enqueue_after_failure_creates_new_job(use_case, uow):
    first = await use_case.execute(ALBUM_ID, None, USER_ID)
    await uow.export_jobs.patch(first.value.export_job_id, {"status": ExportJobStatus.failed})

    second = await use_case.execute(ALBUM_ID, None, USER_ID)

    assert second.is_ok()
    assert second.value.export_job_id != first.value.export_job_id
    assert second.value.status == "queued"


@pytest.mark.asyncio
async def test_enqueue_skips_ready_job_with_lapsed_link(use_case, uow):
    first = await use_case.execute(ALBUM_ID, None, USER_ID)
    await uow.export_jobs.patch(first.value.export_job_id, {
        "status": ExportJobStatus.ready,
        "expires_at": datetime.now(timezone.utc) - timedelta(minutes=1),
    })

    second = await use_case.execute(ALBUM_ID, None, USER_ID)

    assert second.value.export_job_id != first.value.export_job_id


@pytest.mark.asyncio
async def test_enqueue_drops_photos_of_other_albums(use_case, uow):
    """Explicit ids are restricted to the album, keeping the requested order"""
    result = await use_case.execute(ALBUM_ID, ["p3", "foreign", "p1", "p3"], USER_ID)

    assert result.is_ok()
    assert result.value.total_photos == 2
    assert result.value.total_bytes == 2 * MB
    assert uow.export_jobs.row(result.value.export_job_id).photo_ids == ["p3", "p1"]


@pytest.mark.asyncio
async def test_enqueue_only_foreign_photos_is_not_found(use_case, job_source):
    result = await use_case.execute(ALBUM_ID, ["foreign"], USER_ID)

    assert result.is_err()
    assert result.error.code == "NOT_FOUND"
    assert job_source.submitted == []


@pytest.mark.asyncio
async def test_enqueue_empty_album_is_not_found(uow, job_source, audit_service):
    uow.permissions.grants.add((USER_ID, "empty-album", PermissionKind.download))
    use_case = EnqueueExportUseCase(uow, job_source, audit_service)

    result = await use_case.execute("empty-album", None, USER_ID)

    assert result.error.code == "NOT_FOUND"


@pytest.mark.asyncio
async def test_enqueue_requires_download_permission(use_case):
    result = await use_case.execute(ALBUM_ID, None, "stranger")

    assert result.is_err()
    assert result.error.code == "FORBIDDEN"


@pytest.mark.asyncio
async def test_enqueue_admin_permission_is_enough(uow, job_source, audit_service):
    uow.permissions.grants.add(("admin-user", ALBUM_ID, PermissionKind.admin))
    use_case = EnqueueExportUseCase(uow, job_source, audit_service)

    result = await use_case.execute(ALBUM_ID, None, "admin-user")

    assert result.is_ok()


@pytest.mark.asyncio
async def test_enqueue_rejects_too_many_photos(uow, job_source, audit_service):
    use_case = EnqueueExportUseCase(uow, job_source, audit_service, max_photos=2)

    result = await use_case.execute(ALBUM_ID, None, USER_ID)

    assert result.error.code == "LIMIT_EXCEEDED"
    assert result.error.details == {"total_photos": 3, "max_photos": 2}
    assert uow.export_jobs.rows == {}


@pytest.mark.asyncio
async def test_enqueue_rejects_too_many_bytes(uow, job_source, audit_service):
    use_case = EnqueueExportUseCase(uow, job_source, audit_service, max_total_bytes=3 * MB)

    result = await use_case.execute(ALBUM_ID, None, USER_ID)

    assert result.error.code == "LIMIT_EXCEEDED"
    assert result.error.details["total_bytes"] == 4 * MB
    assert job_source.submitted == []


@pytest.mark.asyncio
async def test_enqueue_limits_are_inclusive(uow, job_source, audit_service):
    use_case = EnqueueExportUseCase(
        uow, job_source, audit_service, max_photos=3, max_total_bytes=4 * MB
    )

    result = await use_case.execute(ALBUM_ID, None, USER_ID)

    assert result.is_ok()


def test_build_object_key_sanitizes_title():
    key = build_object_key("album-1", "Été / Plage #1", now_ms=1700000000000)

    assert key == "album-1/exports/1700000000000__t____Plage__1.zip"


def test_build_object_key_without_title():
    assert build_object_key("album-1", None, now_ms=5) == "album-1/exports/5_album.zip"
