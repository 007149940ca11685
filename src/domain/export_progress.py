"""In-memory progress of a running export.

Counters are accumulated by the archive builder and periodically copied into
the job record; they are authoritative only until the next patch is written.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from src.domain.base import utc_now


def estimate_eta(
    total_bytes: int,
    processed_bytes: int,
    started_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> Optional[int]:
    """
    Estimate remaining seconds from the average byte rate since start.

    Returns None while the rate is unknown (nothing processed yet, no start
    time, or no elapsed time).
    """
    if not processed_bytes or started_at is None:
        return None
    now = now or utc_now()
    elapsed = (now - started_at).total_seconds()
    if elapsed <= 0:
        return None
    rate = processed_bytes / elapsed
    if rate <= 0:
        return None
    remaining = max(0, total_bytes - processed_bytes)
    return max(0, round(remaining / rate))


@dataclass
class ExportProgress:
    total_photos: int
    total_bytes: int
    processed_photos: int = 0
    processed_bytes: int = 0
    failed_photos: int = 0
    started_at: datetime = field(default_factory=utc_now)

    def record_photo(self, size: int) -> None:
        self.processed_photos += 1
        self.processed_bytes += size
        if self.total_bytes:
            self.processed_bytes = min(self.processed_bytes, self.total_bytes)

    def record_failure(self) -> None:
        """A placeholder entry still counts as a processed photo"""
        self.processed_photos += 1
        self.failed_photos += 1

    @property
    def succeeded_photos(self) -> int:
        return self.processed_photos - self.failed_photos

    def eta_seconds(self, now: Optional[datetime] = None) -> Optional[int]:
        return estimate_eta(self.total_bytes, self.processed_bytes, self.started_at, now)
