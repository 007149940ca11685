from src.app.repositories.export_job_repository import IExportJobRepository
from src.app.repositories.photo_repository import IPhotoRepository
from src.app.repositories.album_repository import IAlbumRepository
from src.app.repositories.album_permission_repository import IAlbumPermissionRepository

__all__ = [
    "IExportJobRepository",
    "IPhotoRepository",
    "IAlbumRepository",
    "IAlbumPermissionRepository",
]
