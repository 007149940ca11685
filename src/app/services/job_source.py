"""Job Source Interface

Where the export worker picks up queued jobs. Two deployment topologies share
the same processing code: an in-process queue fed by the API, and a separate
runner polling the job table.
"""
from abc import ABC, abstractmethod
from typing import List


class JobSource(ABC):
    """Interface for handing queued export job ids to workers"""

    @abstractmethod
    async def submit(self, job_id: str) -> None:
        """
        Announce a newly created job

        Backends that discover jobs by polling may ignore this.
        """
        pass

    @abstractmethod
    async def next_job_ids(self, limit: int) -> List[str]:
        """
        Take up to `limit` job ids ready for processing

        Returns an empty list when nothing is waiting. Delivery is at least
        once; workers must claim a job before working on it.
        """
        pass
