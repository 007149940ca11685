from .dtos import CreateExportRequestDTO, ExportJobDTO, DownloadInfoDTO
from .enqueue_export_use_case import EnqueueExportUseCase, build_object_key
from .get_export_status_use_case import GetExportStatusUseCase
from .get_download_info_use_case import GetDownloadInfoUseCase
from .list_album_exports_use_case import ListAlbumExportsUseCase
from .cancel_export_use_case import CancelExportUseCase
from .process_export_job_use_case import ProcessExportJobUseCase
from .sweep_expired_exports_use_case import SweepExpiredExportsUseCase
from .sweep_failed_exports_use_case import SweepFailedExportsUseCase

__all__ = [
    "CreateExportRequestDTO",
    "ExportJobDTO",
    "DownloadInfoDTO",
    "EnqueueExportUseCase",
    "build_object_key",
    "GetExportStatusUseCase",
    "GetDownloadInfoUseCase",
    "ListAlbumExportsUseCase",
    "CancelExportUseCase",
    "ProcessExportJobUseCase",
    "SweepExpiredExportsUseCase",
    "SweepFailedExportsUseCase",
]
