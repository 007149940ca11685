from enum import Enum


class ExportJobStatus(str, Enum):
    """Status of an album export job"""
    queued = "queued"
    processing = "processing"
    ready = "ready"
    failed = "failed"
    expired = "expired"
    cancelled = "cancelled"


class PermissionKind(str, Enum):
    """Album permission granted to a user"""
    view = "view"
    download = "download"
    upload = "upload"
    admin = "admin"


TERMINAL_EXPORT_STATUSES = frozenset({
    ExportJobStatus.failed,
    ExportJobStatus.expired,
    ExportJobStatus.cancelled,
})

# Statuses an identical export request can be served from
REUSABLE_EXPORT_STATUSES = (
    ExportJobStatus.queued,
    ExportJobStatus.processing,
    ExportJobStatus.ready,
)
