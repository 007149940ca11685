from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy import update, delete
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from src.app.repositories.export_job_repository import IExportJobRepository
from src.domain.export_job import ExportJob
from src.domain.enums import ExportJobStatus


class SqlAlchemyExportJobRepository(IExportJobRepository):
    """SQLAlchemy implementation of the export job record store"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, export_job: ExportJob) -> ExportJob:
        """Create a new export job"""
        self.session.add(export_job)
        await self.session.flush()
        await self.session.refresh(export_job)
        return export_job

    async def get_by_id(self, job_id: str) -> Optional[ExportJob]:
        """Get export job by ID"""
        stmt = select(ExportJob).where(ExportJob.id == job_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def patch(
        self,
        job_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[ExportJobStatus] = None,
    ) -> bool:
        """
        Single UPDATE statement so concurrent writers cannot interleave; with
        `expected_status` it doubles as a compare-and-set on the status column.
        """
        if not fields:
            return False
        stmt = update(ExportJob).where(ExportJob.id == job_id)
        if expected_status is not None:
            stmt = stmt.where(ExportJob.status == expected_status)
        stmt = stmt.values(**fields).execution_options(synchronize_session=False)
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def find_by_status(
        self, status: ExportJobStatus, limit: int = 10
    ) -> List[ExportJob]:
        """Get jobs in a status, oldest first"""
        stmt = (
            select(ExportJob)
            .where(ExportJob.status == status)
            .order_by(ExportJob.created_at.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_duplicate(
        self,
        album_id: str,
        total_photos: int,
        total_bytes: int,
        statuses: Sequence[ExportJobStatus],
    ) -> Optional[ExportJob]:
        stmt = (
            select(ExportJob)
            .where(
                ExportJob.album_id == album_id,
                ExportJob.total_photos == total_photos,
                ExportJob.total_bytes == total_bytes,
                ExportJob.status.in_(list(statuses)),
            )
            .order_by(ExportJob.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_expired(self, now: datetime, limit: int = 50) -> List[ExportJob]:
        stmt = (
            select(ExportJob)
            .where(
                ExportJob.status == ExportJobStatus.ready,
                ExportJob.expires_at.is_not(None),
                ExportJob.expires_at < now,
            )
            .order_by(ExportJob.expires_at.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_failed_before(self, cutoff: datetime, limit: int = 100) -> List[ExportJob]:
        stmt = (
            select(ExportJob)
            .where(
                ExportJob.status == ExportJobStatus.failed,
                ExportJob.created_at < cutoff,
            )
            .order_by(ExportJob.created_at.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_album(self, album_id: str, limit: int = 10) -> List[ExportJob]:
        """Get the latest export jobs of an album"""
        stmt = (
            select(ExportJob)
            .where(ExportJob.album_id == album_id)
            .order_by(ExportJob.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete(self, job_id: str) -> bool:
        stmt = delete(ExportJob).where(ExportJob.id == job_id)
        result = await self.session.execute(stmt)
        return result.rowcount > 0
