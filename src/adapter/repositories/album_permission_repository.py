from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from src.app.repositories.album_permission_repository import IAlbumPermissionRepository
from src.domain.album_permission import UserAlbumPermission
from src.domain.enums import PermissionKind


class SqlAlchemyAlbumPermissionRepository(IAlbumPermissionRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def has_permission(self, user_id: str, album_id: str, kind: PermissionKind) -> bool:
        stmt = (
            select(UserAlbumPermission.id)
            .where(
                UserAlbumPermission.user_id == user_id,
                UserAlbumPermission.album_id == album_id,
                UserAlbumPermission.permission.in_([PermissionKind(kind), PermissionKind.admin]),
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.first() is not None
