from typing import List
from libs.result import Result, Return
from src.app.services.unit_of_work import UnitOfWork
from .dtos import ExportJobDTO


class ListAlbumExportsUseCase:
    """Use case: List the most recent exports of an album, newest first"""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(self, album_id: str, limit: int = 10) -> Result[List[ExportJobDTO]]:
        async with self.uow:
            export_jobs = await self.uow.export_jobs.list_by_album(album_id, limit)
            return Return.ok([ExportJobDTO.from_entity(job) for job in export_jobs])
