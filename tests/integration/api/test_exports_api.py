"""Integration tests for the Export API

Covers the HTTP contract: creating export jobs, polling their status, fetching
the download link, cancellation and the error body shape. Archive building is
covered by the unit tests.
"""
import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone
from jose import jwt
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from src.domain.album import Album
from src.domain.album_permission import UserAlbumPermission
from src.domain.enums import ExportJobStatus, PermissionKind
from src.domain.export_job import ExportJob
from src.domain.photo import Photo
from src.domain.base import generate_uuid

USER_ID = "test-user-id"
MB = 1024 * 1024


# ============================================================================
# FIXTURES
# ============================================================================


@pytest_asyncio.fixture
async def album(db_session: AsyncSession):
    """Album with three photos (1 MB, 2 MB, 1 MB) the test user may download"""
    album = Album(id="album-1", title="Summer Trip")
    db_session.add(album)
    for index, size in enumerate([1 * MB, 2 * MB, 1 * MB]):
        db_session.add(Photo(
            id=f"photo-{index}",
            album_id=album.id,
            storage_key=f"{album.id}/originals/photo-{index}.jpg",
            filename=f"photo-{index}.jpg",
            original_name=f"IMG_{index}.jpg",
            file_size=size,
            created_at=datetime(2024, 5, 1, 12, index, 0, tzinfo=timezone.utc),
        ))
    db_session.add(UserAlbumPermission(
        user_id=USER_ID, album_id=album.id, permission=PermissionKind.download
    ))
    await db_session.commit()
    return album


@pytest_asyncio.fixture
async def view_only_album(db_session: AsyncSession):
    album = Album(id="album-view", title="Look Only")
    db_session.add(album)
    db_session.add(Photo(
        id="view-photo", album_id=album.id, storage_key="album-view/originals/v.jpg",
        filename="v.jpg", file_size=100,
    ))
    db_session.add(UserAlbumPermission(
        user_id=USER_ID, album_id=album.id, permission=PermissionKind.view
    ))
    await db_session.commit()
    return album


async def add_export(db_session: AsyncSession, album_id: str, status: ExportJobStatus, **fields) -> ExportJob:
    export_job = ExportJob(
        id=generate_uuid(),
        album_id=album_id,
        object_key=f"{album_id}/exports/1700000000000_Summer_Trip.zip",
        status=status,
        total_photos=3,
        total_bytes=4 * MB,
        photo_ids=["photo-0", "photo-1", "photo-2"],
        **fields,
    )
    db_session.add(export_job)
    await db_session.commit()
    return export_job


# ============================================================================
# HEALTH
# ============================================================================


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


# ============================================================================
# CREATE EXPORT
# ============================================================================


@pytest.mark.asyncio
async def test_create_export_success(client, album, job_source):
    """POST without a body exports the whole album"""
    response = await client.post(f"/api/albums/{album.id}/exports")

    assert response.status_code == 202
    data = response.json()
    assert data["status"] == "queued"
    assert data["total_photos"] == 3
    assert data["total_bytes"] == 4 * MB
    assert data["percent"] == 0
    assert data["object_key"].startswith("album-1/exports/")
    assert data["object_key"].endswith("_Summer_Trip.zip")
    assert job_source.submitted == [data["export_job_id"]]


@pytest.mark.asyncio
async def test_create_export_is_idempotent(client, album, job_source):
    first = await client.post(f"/api/albums/{album.id}/exports")
    second = await client.post(f"/api/albums/{album.id}/exports", json={})

    assert second.status_code == 202
    assert second.json()["export_job_id"] == first.json()["export_job_id"]
    assert len(job_source.submitted) == 1


@pytest.mark.asyncio
async def test_create_export_with_photo_selection(client, album):
    response = await client.post(
        f"/api/albums/{album.id}/exports",
        json={"photo_ids": ["photo-1", "photo-1", "not-in-album"]},
    )

    assert response.status_code == 202
    assert response.json()["total_photos"] == 1
    assert response.json()["total_bytes"] == 2 * MB


@pytest.mark.asyncio
async def test_create_export_without_download_permission(client, view_only_album):
    response = await client.post(f"/api/albums/{view_only_album.id}/exports")

    assert response.status_code == 403
    assert response.json() == {"error": {"code": "FORBIDDEN", "message": "Access denied"}}


@pytest.mark.asyncio
async def test_create_export_of_empty_selection(client, album):
    response = await client.post(
        f"/api/albums/{album.id}/exports", json={"photo_ids": ["not-in-album"]}
    )

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_create_export_over_photo_limit(client, album, monkeypatch):
    monkeypatch.setattr(ApplicationConfig, "EXPORT_MAX_PHOTOS", 2)

    response = await client.post(f"/api/albums/{album.id}/exports")

    assert response.status_code == 413
    error = response.json()["error"]
    assert error["code"] == "LIMIT_EXCEEDED"
    assert error["details"] == {"total_photos": 3, "max_photos": 2}


@pytest.mark.asyncio
async def test_create_export_over_byte_limit(client, album, monkeypatch):
    monkeypatch.setattr(ApplicationConfig, "EXPORT_MAX_TOTAL_BYTES", 3 * MB)

    response = await client.post(f"/api/albums/{album.id}/exports")

    assert response.status_code == 413
    assert response.json()["error"]["details"]["total_bytes"] == 4 * MB


# ============================================================================
# STATUS AND LIST
# ============================================================================


@pytest.mark.asyncio
async def test_get_export_status(client, album, db_session):
    export_job = await add_export(
        db_session, album.id, ExportJobStatus.processing,
        processed_photos=1, processed_bytes=1 * MB, eta_seconds=9,
    )

    response = await client.get(f"/api/albums/{album.id}/exports/{export_job.id}")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "processing"
    assert data["percent"] == 25
    assert data["eta_seconds"] == 9


@pytest.mark.asyncio
async def test_get_export_status_not_found(client, album):
    response = await client.get(f"/api/albums/{album.id}/exports/missing")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "EXPORT_JOB_NOT_FOUND"


@pytest.mark.asyncio
async def test_get_export_status_without_permission(client, album, db_session):
    export_job = await add_export(db_session, "someone-elses-album", ExportJobStatus.queued)

    response = await client.get(f"/api/albums/someone-elses-album/exports/{export_job.id}")

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_album_exports(client, album, db_session):
    await add_export(db_session, album.id, ExportJobStatus.failed, created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
    latest = await add_export(db_session, album.id, ExportJobStatus.queued, created_at=datetime(2024, 1, 2, tzinfo=timezone.utc))

    response = await client.get(f"/api/albums/{album.id}/exports", params={"limit": 1})

    assert response.status_code == 200
    assert [job["export_job_id"] for job in response.json()] == [latest.id]


@pytest.mark.asyncio
async def test_list_album_exports_rejects_bad_limit(client, album):
    response = await client.get(f"/api/albums/{album.id}/exports", params={"limit": 0})

    assert response.status_code == 422


# ============================================================================
# DOWNLOAD
# ============================================================================


@pytest.mark.asyncio
async def test_download_ready_export(client, album, db_session):
    export_job = await add_export(
        db_session, album.id, ExportJobStatus.ready,
        download_url="https://storage.test/album-1/exports/a.zip?signature=abc",
        checksum="ab" * 32,
        archive_bytes=4 * MB - 100,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=12),
        processed_photos=3,
        processed_bytes=4 * MB,
        percent=100,
    )

    response = await client.get(f"/api/albums/{album.id}/exports/{export_job.id}/download")

    assert response.status_code == 200
    data = response.json()
    assert data["download_url"].endswith("signature=abc")
    assert data["checksum"] == "ab" * 32
    assert data["file_size"] == 4 * MB - 100


@pytest.mark.asyncio
async def test_download_while_processing_is_conflict(client, album, db_session):
    export_job = await add_export(
        db_session, album.id, ExportJobStatus.processing, processed_bytes=2 * MB
    )

    response = await client.get(f"/api/albums/{album.id}/exports/{export_job.id}/download")

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "NOT_READY"
    assert error["details"] == {"status": "processing", "percent": 50}


@pytest.mark.asyncio
async def test_download_of_expired_export_is_gone(client, album, db_session):
    export_job = await add_export(
        db_session, album.id, ExportJobStatus.expired,
        error="Download link expired and file cleaned up",
    )

    response = await client.get(f"/api/albums/{album.id}/exports/{export_job.id}/download")

    assert response.status_code == 410
    assert response.json()["error"]["code"] == "GONE"


@pytest.mark.asyncio
async def test_download_requires_download_permission(client, view_only_album, db_session):
    export_job = await add_export(db_session, view_only_album.id, ExportJobStatus.queued)

    response = await client.get(
        f"/api/albums/{view_only_album.id}/exports/{export_job.id}/download"
    )

    assert response.status_code == 403


# ============================================================================
# CANCEL
# ============================================================================


@pytest.mark.asyncio
async def test_cancel_queued_export(client, album):
    created = await client.post(f"/api/albums/{album.id}/exports")
    export_id = created.json()["export_job_id"]

    response = await client.delete(f"/api/albums/{album.id}/exports/{export_id}")
    again = await client.delete(f"/api/albums/{album.id}/exports/{export_id}")

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "INVALID_JOB_STATUS"


@pytest.mark.asyncio
async def test_new_export_after_cancel(client, album):
    created = await client.post(f"/api/albums/{album.id}/exports")
    export_id = created.json()["export_job_id"]
    await client.delete(f"/api/albums/{album.id}/exports/{export_id}")

    response = await client.post(f"/api/albums/{album.id}/exports")

    assert response.status_code == 202
    assert response.json()["export_job_id"] != export_id


# ============================================================================
# AUTHENTICATION
# ============================================================================


@pytest.mark.asyncio
async def test_missing_token_is_unauthorized(app, client, album, monkeypatch):
    from src.depends import get_current_user

    monkeypatch.setattr(ApplicationConfig, "AUTH_DISABLED", False)
    app.dependency_overrides.pop(get_current_user)

    response = await client.get(f"/api/albums/{album.id}/exports")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_bearer_token_identifies_user(app, client, album, monkeypatch):
    from src.depends import get_current_user

    monkeypatch.setattr(ApplicationConfig, "AUTH_DISABLED", False)
    app.dependency_overrides.pop(get_current_user)
    token = jwt.encode({"sub": USER_ID}, ApplicationConfig.JWT_SECRET, algorithm="HS256")

    response = await client.get(
        f"/api/albums/{album.id}/exports", headers={"Authorization": f"Bearer {token}"}
    )
    forged = await client.get(
        f"/api/albums/{album.id}/exports", headers={"Authorization": "Bearer not-a-token"}
    )

    assert response.status_code == 200
    assert forged.status_code == 401
