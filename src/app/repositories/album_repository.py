from abc import ABC, abstractmethod
from typing import Optional
from src.domain.album import Album


class IAlbumRepository(ABC):

    @abstractmethod
    async def get_by_id(self, album_id: str) -> Optional[Album]:
        pass
