"""Export DTOs

Data Transfer Objects for album export functionality.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from src.domain.export_job import ExportJob


class CreateExportRequestDTO(BaseModel):
    """Request body for creating an export; omit photo_ids to export the whole album"""
    photo_ids: Optional[List[str]] = Field(default=None, max_length=10000)

    @field_validator("photo_ids")
    @classmethod
    def drop_duplicates(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        return list(dict.fromkeys(value))


class ExportJobDTO(BaseModel):
    """Response DTO for export job status"""
    export_job_id: str
    album_id: str
    status: str
    object_key: str
    total_photos: int
    processed_photos: int
    failed_photos: int
    total_bytes: int
    processed_bytes: int
    percent: int
    eta_seconds: Optional[int] = None
    checksum: Optional[str] = None
    download_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    error: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, export_job: ExportJob) -> "ExportJobDTO":
        return cls(
            export_job_id=export_job.id,
            album_id=export_job.album_id,
            status=export_job.status_value,
            object_key=export_job.object_key,
            total_photos=export_job.total_photos,
            processed_photos=export_job.processed_photos,
            failed_photos=export_job.failed_photos,
            total_bytes=export_job.total_bytes,
            processed_bytes=export_job.processed_bytes,
            percent=export_job.progress_percent,
            eta_seconds=export_job.eta_seconds,
            checksum=export_job.checksum,
            download_url=export_job.download_url,
            expires_at=export_job.expires_at,
            error=export_job.error,
            created_at=export_job.created_at,
            started_at=export_job.started_at,
            completed_at=export_job.completed_at,
        )


class DownloadInfoDTO(BaseModel):
    """Response DTO for a ready export's download link"""
    export_job_id: str
    download_url: str
    checksum: str
    expires_at: datetime
    total_photos: int
    failed_photos: int
    file_size: Optional[int] = None
    error: Optional[str] = None
