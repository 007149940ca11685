"""Photo metadata owned by the gallery.

The export pipeline only reads these rows; uploads, renames and deletions
happen in the gallery API.
"""
import os
from datetime import datetime
from typing import Optional
from sqlalchemy import BigInteger
from sqlmodel import Field, Column
from src.domain.base import BaseModel, UTCDateTime, generate_uuid, utc_now


class Photo(BaseModel, table=True):
    """Read-only reference to a stored photo"""
    __tablename__ = "photos"

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    album_id: str = Field(index=True, nullable=False)

    # Location of the original in object storage
    storage_key: str = Field(nullable=False)
    filename: str = Field(nullable=False)
    original_name: Optional[str] = Field(default=None)
    file_size: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))

    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime, nullable=False))

    @property
    def size(self) -> int:
        return self.file_size or 0

    def archive_entry_name(self) -> str:
        """Collision-free entry name: original base name plus a slice of the id"""
        base, _ = os.path.splitext(_strip_path(self.original_name or self.filename))
        _, ext = os.path.splitext(self.filename)
        return f"{base or 'photo'}_{self.id[:8]}{ext or '.jpg'}"

    def placeholder_entry_name(self) -> str:
        base, _ = os.path.splitext(_strip_path(self.original_name or self.filename))
        return f"ERROR_{base or 'photo'}_{self.id[:8]}.txt"


def _strip_path(name: str) -> str:
    return name.replace("\\", "/").rsplit("/", 1)[-1]
