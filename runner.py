"""Standalone export runner.

Polls the job table for queued exports and processes them, and runs the
cleanup sweeps, in a process separate from the API.

Usage:
    python runner.py

Run the API with EXPORT_WORKER_MODE set to anything but "in_process" so the
two do not compete for the same jobs (the claim keeps that safe, just wasteful).
"""
import asyncio
import logging
import signal
from config import ApplicationConfig
from src import depends
from src.adapter.services.store_polling_job_source import StorePollingJobSource
from src.worker import CleanupWorker, ExportWorker

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT_SECONDS = 60


async def run_export_runner(config=ApplicationConfig):
    """
    Main entry point for running the export runner.

    Runs until SIGINT or SIGTERM, then lets running exports finish (up to
    SHUTDOWN_TIMEOUT_SECONDS) before exiting.
    """
    export_worker = ExportWorker(
        StorePollingJobSource(depends.get_unit_of_work()),
        depends.new_process_export_use_case,
        max_concurrent_jobs=config.EXPORT_MAX_CONCURRENT_JOBS,
        poll_interval=config.EXPORT_POLL_INTERVAL_SECONDS,
    )
    cleanup_worker = CleanupWorker(
        depends.new_sweep_expired_use_case,
        depends.new_sweep_failed_use_case if config.EXPORT_FAILED_RETENTION_DAYS else None,
        interval=config.EXPORT_CLEANUP_INTERVAL_SECONDS,
    )

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_requested.set)

    tasks = [
        asyncio.ensure_future(export_worker.start()),
        asyncio.ensure_future(cleanup_worker.start()),
    ]
    logger.info(
        f"[Runner] Started: max {config.EXPORT_MAX_CONCURRENT_JOBS} concurrent exports, "
        f"polling every {config.EXPORT_POLL_INTERVAL_SECONDS}s, "
        f"cleanup every {config.EXPORT_CLEANUP_INTERVAL_SECONDS}s"
    )

    try:
        await stop_requested.wait()
        logger.info("[Runner] Received shutdown signal")
    finally:
        await cleanup_worker.stop()
        await export_worker.stop(timeout=SHUTDOWN_TIMEOUT_SECONDS)
        await asyncio.gather(*tasks, return_exceptions=True)
        await depends.engine.dispose()
        logger.info("[Runner] Shutdown complete")


if __name__ == "__main__":
    # Configure logging
    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    asyncio.run(run_export_runner())
