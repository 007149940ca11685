"""Worker module - Background processing for album exports.

Contains background workers for:
- ExportWorker: Builds queued export archives
- CleanupWorker: Expires lapsed archives and purges old failed jobs
"""
from .export_worker import ExportWorker
from .cleanup_worker import CleanupWorker

__all__ = ["ExportWorker", "CleanupWorker"]
