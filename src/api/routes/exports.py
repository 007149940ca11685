"""Export API Routes

Endpoints for requesting album ZIP exports, tracking them and fetching the
download link.
"""
from typing import List, Optional
from fastapi import APIRouter, Body, Depends, Query, status
from libs.result import Error
from src.api.error import ClientError
from src.app.services.audit_service import AuditService
from src.app.services.job_source import JobSource
from src.app.services.unit_of_work import UnitOfWork
from src.depends import get_unit_of_work, get_current_user, get_job_source, get_audit_service
from src.app.use_cases.exports import (
    EnqueueExportUseCase,
    GetExportStatusUseCase,
    GetDownloadInfoUseCase,
    ListAlbumExportsUseCase,
    CancelExportUseCase,
    CreateExportRequestDTO,
    ExportJobDTO,
    DownloadInfoDTO,
)
from src.domain.enums import PermissionKind
from config import ApplicationConfig

router = APIRouter()

ERROR_STATUS = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "EXPORT_JOB_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "LIMIT_EXCEEDED": status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    "NOT_READY": status.HTTP_409_CONFLICT,
    "INVALID_JOB_STATUS": status.HTTP_409_CONFLICT,
    "GONE": status.HTTP_410_GONE,
}


def raise_for_error(error: Error):
    raise ClientError(error, status_code=ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST))


async def require_album_permission(
    uow: UnitOfWork, user_id: str, album_id: str, kind: PermissionKind
):
    async with uow:
        allowed = await uow.permissions.has_permission(user_id, album_id, kind)
    if not allowed:
        raise_for_error(Error(code="FORBIDDEN", message="Access denied"))


@router.post(
    "/albums/{album_id}/exports",
    response_model=ExportJobDTO,
    status_code=status.HTTP_202_ACCEPTED
)
async def create_export(
    album_id: str,
    request: Optional[CreateExportRequestDTO] = Body(default=None),
    current_user: dict = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_unit_of_work),
    job_source: JobSource = Depends(get_job_source),
    audit_service: AuditService = Depends(get_audit_service),
):
    """
    Request a ZIP export of an album

    Omit `photo_ids` to export every photo of the album. An identical export
    that is still queued, processing or downloadable is returned instead of
    starting a new one. Poll the status endpoint for progress.
    """
    use_case = EnqueueExportUseCase(
        uow,
        job_source,
        audit_service,
        max_photos=ApplicationConfig.EXPORT_MAX_PHOTOS,
        max_total_bytes=ApplicationConfig.EXPORT_MAX_TOTAL_BYTES,
    )
    photo_ids = request.photo_ids if request else None
    result = await use_case.execute(album_id, photo_ids, current_user["user_id"])

    if result.is_err():
        raise_for_error(result.error)

    return result.value


@router.get("/albums/{album_id}/exports", response_model=List[ExportJobDTO])
async def list_album_exports(
    album_id: str,
    limit: int = Query(default=10, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    """List the most recent exports of an album"""
    await require_album_permission(uow, current_user["user_id"], album_id, PermissionKind.view)

    result = await ListAlbumExportsUseCase(uow).execute(album_id, limit)
    return result.value


@router.get("/albums/{album_id}/exports/{export_id}", response_model=ExportJobDTO)
async def get_export_status(
    album_id: str,
    export_id: str,
    current_user: dict = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    """
    Get export job status

    Returns status, counters, percent and ETA. Poll at most every 500ms.
    """
    await require_album_permission(uow, current_user["user_id"], album_id, PermissionKind.view)

    result = await GetExportStatusUseCase(uow).execute(export_id, album_id=album_id)

    if result.is_err():
        raise_for_error(result.error)

    return result.value


@router.get("/albums/{album_id}/exports/{export_id}/download", response_model=DownloadInfoDTO)
async def get_export_download(
    album_id: str,
    export_id: str,
    current_user: dict = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_unit_of_work),
    audit_service: AuditService = Depends(get_audit_service),
):
    """
    Get the download link of a finished export

    409 while the export is not ready, 410 once the link has expired.
    """
    await require_album_permission(uow, current_user["user_id"], album_id, PermissionKind.download)

    use_case = GetDownloadInfoUseCase(uow, audit_service)
    result = await use_case.execute(
        export_id, album_id=album_id, requester_id=current_user["user_id"]
    )

    if result.is_err():
        raise_for_error(result.error)

    return result.value


@router.delete("/albums/{album_id}/exports/{export_id}", response_model=ExportJobDTO)
async def cancel_export(
    album_id: str,
    export_id: str,
    current_user: dict = Depends(get_current_user),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    """Cancel an export that has not started processing yet"""
    await require_album_permission(uow, current_user["user_id"], album_id, PermissionKind.download)

    result = await CancelExportUseCase(uow).execute(export_id, album_id)

    if result.is_err():
        raise_for_error(result.error)

    return result.value
