from src.domain.base import BaseModel, generate_uuid
from src.domain.enums import (
    ExportJobStatus,
    PermissionKind,
    TERMINAL_EXPORT_STATUSES,
    REUSABLE_EXPORT_STATUSES,
)
from src.domain.export_job import ExportJob, InvalidStatusTransition
from src.domain.export_progress import ExportProgress, estimate_eta
from src.domain.photo import Photo
from src.domain.album import Album
from src.domain.album_permission import UserAlbumPermission

__all__ = [
    # Base
    "BaseModel",
    "generate_uuid",
    # Enums
    "ExportJobStatus",
    "PermissionKind",
    "TERMINAL_EXPORT_STATUSES",
    "REUSABLE_EXPORT_STATUSES",
    # Entities
    "ExportJob",
    "InvalidStatusTransition",
    "ExportProgress",
    "estimate_eta",
    "Photo",
    "Album",
    "UserAlbumPermission",
]
