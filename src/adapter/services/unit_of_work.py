from typing import Callable
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.services.unit_of_work import UnitOfWork
from src.adapter.repositories.export_job_repository import SqlAlchemyExportJobRepository
from src.adapter.repositories.photo_repository import SqlAlchemyPhotoRepository
from src.adapter.repositories.album_repository import SqlAlchemyAlbumRepository
from src.adapter.repositories.album_permission_repository import SqlAlchemyAlbumPermissionRepository


class SqlAlchemyUnitOfWork(UnitOfWork):
    """
    SQLAlchemy implementation of UnitOfWork pattern

    Each `async with` block runs on a fresh session from the factory, so one
    instance can be entered repeatedly by a long-running job without holding
    a connection between short transactions.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory
        self.session = None

    async def __aenter__(self):
        self.session = self.session_factory()
        # Initialize all repositories with the session
        self.export_jobs = SqlAlchemyExportJobRepository(self.session)
        self.photos = SqlAlchemyPhotoRepository(self.session)
        self.albums = SqlAlchemyAlbumRepository(self.session)
        self.permissions = SqlAlchemyAlbumPermissionRepository(self.session)
        return self

    async def __aexit__(self, *args):
        try:
            await self.rollback()
        finally:
            await self.session.close()

    async def commit(self):
        await self.session.commit()

    async def rollback(self):
        await self.session.rollback()
