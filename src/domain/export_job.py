"""ExportJob Entity

Tracks album export jobs that bundle photos into a downloadable ZIP archive.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import BigInteger, JSON as SQLJSON
from sqlmodel import Field, Column
from src.domain.base import BaseModel, UTCDateTime, generate_uuid, utc_now
from src.domain.enums import ExportJobStatus


class InvalidStatusTransition(ValueError):
    """Raised when an export job is moved along an edge the state machine forbids"""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move export job from {current} to {target}")


ALLOWED_TRANSITIONS = {
    ExportJobStatus.queued: {ExportJobStatus.processing, ExportJobStatus.cancelled},
    ExportJobStatus.processing: {ExportJobStatus.ready, ExportJobStatus.failed},
    ExportJobStatus.ready: {ExportJobStatus.expired},
    ExportJobStatus.failed: set(),
    ExportJobStatus.expired: set(),
    ExportJobStatus.cancelled: set(),
}


class ExportJob(BaseModel, table=True):
    """
    ExportJob Entity

    One request to bundle a set of photos of an album into a single archive.
    The transition methods mutate the entity and return the changed columns so
    the caller can persist them as one atomic patch.
    """
    __tablename__ = "album_exports"

    id: str = Field(default_factory=generate_uuid, primary_key=True)

    # Scope
    album_id: str = Field(index=True, nullable=False)
    requested_by: Optional[str] = Field(default=None, index=True)
    photo_ids: List[str] = Field(default_factory=list, sa_column=Column(SQLJSON, default=[]))

    # Job status
    status: ExportJobStatus = Field(default=ExportJobStatus.queued, nullable=False, index=True)

    # Sizing and progress
    total_photos: int = Field(default=0, nullable=False)
    processed_photos: int = Field(default=0, nullable=False)
    failed_photos: int = Field(default=0, nullable=False)
    total_bytes: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    processed_bytes: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    eta_seconds: Optional[int] = Field(default=None)
    percent: Optional[int] = Field(default=None)

    # Artifact
    object_key: str = Field(nullable=False)
    download_url: Optional[str] = Field(default=None)
    checksum: Optional[str] = Field(default=None)
    archive_bytes: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    expires_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime, nullable=True, index=True))

    # Error tracking
    error: Optional[str] = Field(default=None)

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime, nullable=False, index=True))
    started_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime, nullable=True))
    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime, nullable=True))

    class Config:
        use_enum_values = True

    @property
    def status_value(self) -> str:
        return self.status.value if hasattr(self.status, "value") else self.status

    @property
    def progress_percent(self) -> int:
        """Explicit percent when recorded, otherwise derived from the byte counters"""
        if self.percent is not None:
            return self.percent
        if not self.total_bytes:
            return 0
        return min(100, round(self.processed_bytes / self.total_bytes * 100))

    def is_download_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        return self.expires_at is not None and self.expires_at <= now

    # Business logic methods

    def start_processing(self, started_at: Optional[datetime] = None) -> Dict[str, Any]:
        """Mark job as processing"""
        return self._apply({
            "status": ExportJobStatus.processing,
            "started_at": started_at or utc_now(),
        })

    def record_progress(
        self, processed_photos: int, processed_bytes: int, eta_seconds: Optional[int]
    ) -> Dict[str, Any]:
        """Advance the progress counters; they never move backwards"""
        processed_photos = min(max(self.processed_photos, processed_photos), self.total_photos)
        processed_bytes = max(self.processed_bytes, processed_bytes)
        if self.total_bytes:
            processed_bytes = min(processed_bytes, self.total_bytes)
        return self._apply({
            "processed_photos": processed_photos,
            "processed_bytes": processed_bytes,
            "eta_seconds": eta_seconds,
        })

    def complete(
        self,
        download_url: str,
        checksum: str,
        expires_at: datetime,
        archive_bytes: int,
        processed_photos: int,
        processed_bytes: int,
        failed_photos: int = 0,
    ) -> Dict[str, Any]:
        """Mark job as ready with its download URL and archive fingerprint"""
        self._check_transition(ExportJobStatus.ready)
        changes = self.record_progress(processed_photos, processed_bytes, 0)
        changes.update(self._apply({
            "status": ExportJobStatus.ready,
            "download_url": download_url,
            "checksum": checksum,
            "expires_at": expires_at,
            "archive_bytes": archive_bytes,
            "failed_photos": failed_photos,
            "percent": 100,
            "error": f"{failed_photos} photo(s) failed to export" if failed_photos else None,
            "completed_at": utc_now(),
        }))
        return changes

    def fail(self, error: str, processed_photos: Optional[int] = None) -> Dict[str, Any]:
        """Mark job as failed with error message"""
        changes = {
            "status": ExportJobStatus.failed,
            "error": error,
            "eta_seconds": None,
            "completed_at": utc_now(),
        }
        if processed_photos is not None:
            changes["processed_photos"] = min(processed_photos, self.total_photos)
        return self._apply(changes)

    def expire(self) -> Dict[str, Any]:
        """Mark a ready job as expired; its archive is removed or abandoned by the sweep"""
        return self._apply({
            "status": ExportJobStatus.expired,
            "download_url": None,
            "checksum": None,
            "error": "Download link expired and file cleaned up",
        })

    def cancel(self) -> Dict[str, Any]:
        """Prevent a queued job from ever starting"""
        return self._apply({
            "status": ExportJobStatus.cancelled,
            "error": "Export cancelled before processing started",
            "completed_at": utc_now(),
        })

    def _check_transition(self, target: ExportJobStatus) -> None:
        current = ExportJobStatus(self.status)
        target = ExportJobStatus(target)
        if target != current and target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidStatusTransition(current.value, target.value)

    def _apply(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        if "status" in changes:
            self._check_transition(changes["status"])
        for name, value in changes.items():
            setattr(self, name, value)
        return changes
