from typing import Optional
from sqlmodel import Field
from src.domain.base import BaseModel, generate_uuid


class Album(BaseModel, table=True):
    """Read-only album row; only the title is used, to name export archives"""
    __tablename__ = "albums"

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    title: Optional[str] = Field(default=None)
