from src.adapter.repositories.export_job_repository import SqlAlchemyExportJobRepository
from src.adapter.repositories.photo_repository import SqlAlchemyPhotoRepository
from src.adapter.repositories.album_repository import SqlAlchemyAlbumRepository
from src.adapter.repositories.album_permission_repository import SqlAlchemyAlbumPermissionRepository

__all__ = [
    "SqlAlchemyExportJobRepository",
    "SqlAlchemyPhotoRepository",
    "SqlAlchemyAlbumRepository",
    "SqlAlchemyAlbumPermissionRepository",
]
