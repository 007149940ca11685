from typing import List, Optional, Sequence
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from src.app.repositories.photo_repository import IPhotoRepository
from src.domain.photo import Photo


class SqlAlchemyPhotoRepository(IPhotoRepository):
    """SQLAlchemy implementation of the photo metadata lookup"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_album(self, album_id: str) -> List[Photo]:
        stmt = (
            select(Photo)
            .where(Photo.album_id == album_id)
            .order_by(Photo.created_at.asc(), Photo.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_by_id(self, photo_id: str) -> Optional[Photo]:
        stmt = select(Photo).where(Photo.id == photo_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_ids(self, photo_ids: Sequence[str]) -> List[Photo]:
        if not photo_ids:
            return []
        stmt = select(Photo).where(Photo.id.in_(list(photo_ids)))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
