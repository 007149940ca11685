from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from src.domain.export_job import ExportJob
from src.domain.enums import ExportJobStatus


class IExportJobRepository(ABC):
    """Interface for the export job record store"""

    @abstractmethod
    async def create(self, export_job: ExportJob) -> ExportJob:
        """Persist a new export job"""
        pass

    @abstractmethod
    async def get_by_id(self, job_id: str) -> Optional[ExportJob]:
        """Get export job by ID"""
        pass

    @abstractmethod
    async def patch(
        self,
        job_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[ExportJobStatus] = None,
    ) -> bool:
        """
        Atomically update columns of one job

        Args:
            job_id: The export job ID
            fields: Column values to write
            expected_status: When given, the update only applies if the job is
                still in this status (used to claim and to guard transitions)

        Returns:
            True if a row was updated
        """
        pass

    @abstractmethod
    async def find_by_status(
        self, status: ExportJobStatus, limit: int = 10
    ) -> List[ExportJob]:
        """Get jobs in the given status, oldest first"""
        pass

    @abstractmethod
    async def find_duplicate(
        self,
        album_id: str,
        total_photos: int,
        total_bytes: int,
        statuses: Sequence[ExportJobStatus],
    ) -> Optional[ExportJob]:
        """Newest job on the album with the same photo count and byte total"""
        pass

    @abstractmethod
    async def get_expired(self, now: datetime, limit: int = 50) -> List[ExportJob]:
        """Ready jobs whose download window closed before `now`"""
        pass

    @abstractmethod
    async def get_failed_before(self, cutoff: datetime, limit: int = 100) -> List[ExportJob]:
        """Failed jobs created before `cutoff`"""
        pass

    @abstractmethod
    async def list_by_album(self, album_id: str, limit: int = 10) -> List[ExportJob]:
        """Most recent jobs of an album, newest first"""
        pass

    @abstractmethod
    async def delete(self, job_id: str) -> bool:
        """Hard-delete a job record"""
        pass
