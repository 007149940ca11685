"""Cleanup Worker

Periodically expires lapsed export archives and purges old failed jobs.
"""
import asyncio
import logging
from typing import Callable, Optional, Tuple
from src.app.use_cases.exports import SweepExpiredExportsUseCase, SweepFailedExportsUseCase

logger = logging.getLogger(__name__)


class CleanupWorker:
    """
    Runs the sweeps once at start, then every `interval` seconds

    `sweep_failed_factory` may be None to keep failed jobs forever.
    """

    def __init__(
        self,
        sweep_expired_factory: Callable[[], SweepExpiredExportsUseCase],
        sweep_failed_factory: Optional[Callable[[], SweepFailedExportsUseCase]],
        interval: float = 3600,
    ):
        self.sweep_expired_factory = sweep_expired_factory
        self.sweep_failed_factory = sweep_failed_factory
        self.interval = interval
        self.running = False
        self._wakeup = asyncio.Event()

    async def start(self):
        self.running = True
        self._wakeup.clear()
        logger.info(f"[CleanupWorker] Started (every {self.interval}s)")

        while self.running:
            await self.run_once()
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    async def stop(self):
        self.running = False
        self._wakeup.set()
        logger.info("[CleanupWorker] Stopped")

    async def run_once(self) -> Tuple[int, int]:
        """
        Run one cleanup cycle.

        Returns:
            (expired jobs swept, failed jobs deleted)
        """
        expired = deleted = 0
        try:
            result = await self.sweep_expired_factory().execute()
            if result.is_ok():
                expired = result.value
        except Exception as e:
            logger.error(f"[CleanupWorker] Expired export sweep failed: {e}")

        if self.sweep_failed_factory is not None:
            try:
                result = await self.sweep_failed_factory().execute()
                if result.is_ok():
                    deleted = result.value
            except Exception as e:
                logger.error(f"[CleanupWorker] Failed export purge failed: {e}")

        if expired or deleted:
            logger.info(
                f"[CleanupWorker] Cleanup complete: {expired} expired, {deleted} failed purged"
            )
        return expired, deleted
