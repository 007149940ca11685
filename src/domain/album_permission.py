from datetime import datetime
from sqlmodel import Field, Column
from src.domain.base import BaseModel, UTCDateTime, generate_uuid, utc_now
from src.domain.enums import PermissionKind


class UserAlbumPermission(BaseModel, table=True):
    """Permission granted to a user on an album (managed by the gallery API)"""
    __tablename__ = "user_album_permissions"

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    user_id: str = Field(index=True, nullable=False)
    album_id: str = Field(index=True, nullable=False)
    permission: PermissionKind = Field(nullable=False)
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime, nullable=False))

    class Config:
        use_enum_values = True

    def grants(self, kind: PermissionKind) -> bool:
        """admin implies every other permission"""
        return self.permission in (PermissionKind(kind), PermissionKind.admin)
