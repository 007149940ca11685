from abc import ABC, abstractmethod
from src.app.repositories.export_job_repository import IExportJobRepository
from src.app.repositories.photo_repository import IPhotoRepository
from src.app.repositories.album_repository import IAlbumRepository
from src.app.repositories.album_permission_repository import IAlbumPermissionRepository


class UnitOfWork(ABC):
    """
    Transaction boundary over the repositories.

    Repositories are only available inside `async with uow:`; anything not
    committed before the block exits is rolled back.
    """

    export_jobs: IExportJobRepository
    photos: IPhotoRepository
    albums: IAlbumRepository
    permissions: IAlbumPermissionRepository

    @abstractmethod
    async def __aenter__(self):
        pass

    @abstractmethod
    async def __aexit__(self, *args):
        pass

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass
