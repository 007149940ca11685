from typing import Optional
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from src.app.repositories.album_repository import IAlbumRepository
from src.domain.album import Album


class SqlAlchemyAlbumRepository(IAlbumRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, album_id: str) -> Optional[Album]:
        stmt = select(Album).where(Album.id == album_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
