from abc import ABC, abstractmethod
from typing import List, Optional, Sequence
from src.domain.photo import Photo


class IPhotoRepository(ABC):
    """Read-only photo metadata lookup"""

    @abstractmethod
    async def get_by_album(self, album_id: str) -> List[Photo]:
        """All photos of an album in upload order"""
        pass

    @abstractmethod
    async def get_by_id(self, photo_id: str) -> Optional[Photo]:
        pass

    @abstractmethod
    async def get_by_ids(self, photo_ids: Sequence[str]) -> List[Photo]:
        """Photos for the given ids; unknown ids are skipped, order is not guaranteed"""
        pass
