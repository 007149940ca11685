from abc import ABC, abstractmethod
from src.domain.enums import PermissionKind


class IAlbumPermissionRepository(ABC):
    """Permission check delegated to the gallery's permission table"""

    @abstractmethod
    async def has_permission(self, user_id: str, album_id: str, kind: PermissionKind) -> bool:
        """True if the user holds `kind` (or admin) on the album"""
        pass
