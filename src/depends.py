from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from motor.motor_asyncio import AsyncIOMotorClient
from config import ApplicationConfig
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.adapter.services.audit_service import MongoAuditService
from src.adapter.services.s3_object_storage import S3ObjectStorage
from src.adapter.services.local_object_storage import LocalObjectStorage
from src.adapter.services.in_memory_job_queue import InMemoryJobQueue
from src.adapter.services.store_polling_job_source import StorePollingJobSource
from src.app.services.archive_builder import ArchiveBuilder
from src.app.services.audit_service import AuditService, NullAuditService
from src.app.services.job_source import JobSource
from src.app.services.object_storage import ObjectStorage
from src.app.services.unit_of_work import UnitOfWork
from src.app.use_cases.exports import (
    ProcessExportJobUseCase,
    SweepExpiredExportsUseCase,
    SweepFailedExportsUseCase,
)
from src.api.utils.jwt import verify_jwt


# PostgreSQL engine
engine = create_async_engine(
    ApplicationConfig.DB_URI,
    echo=False,
    future=True,
    pool_timeout=ApplicationConfig.DB_POOL_TIMEOUT_SECONDS,
    connect_args={"command_timeout": ApplicationConfig.DB_COMMAND_TIMEOUT_SECONDS},
)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)

# MongoDB client
mongo_client = AsyncIOMotorClient(ApplicationConfig.MONGODB_URI)


def build_object_storage(config) -> ObjectStorage:
    """Object storage selected by STORAGE_BACKEND"""
    if config.STORAGE_BACKEND == "local":
        return LocalObjectStorage(
            base_path=config.FILE_STORAGE_PATH,
            base_url=config.FILE_STORAGE_BASE_URL,
        )
    return S3ObjectStorage(
        bucket=config.S3_BUCKET,
        region=config.S3_REGION,
        endpoint_url=config.S3_ENDPOINT,
        public_endpoint_url=config.S3_PUBLIC_ENDPOINT,
        access_key_id=config.S3_ACCESS_KEY_ID,
        secret_access_key=config.S3_SECRET_ACCESS_KEY,
        force_path_style=config.S3_FORCE_PATH_STYLE,
        part_size=config.S3_PART_SIZE,
        connect_timeout=config.S3_CONNECT_TIMEOUT_SECONDS,
        read_timeout=config.S3_READ_TIMEOUT_SECONDS,
        max_attempts=config.S3_MAX_ATTEMPTS,
    )


def build_archive_builder(config, object_storage: ObjectStorage) -> ArchiveBuilder:
    return ArchiveBuilder(
        object_storage,
        batch_size=config.EXPORT_BATCH_SIZE,
        max_concurrent_downloads=config.EXPORT_CONCURRENT_DOWNLOADS,
        download_timeout=config.EXPORT_DOWNLOAD_TIMEOUT_SECONDS,
        max_attempts=config.EXPORT_MAX_RETRIES,
        batch_delay=config.EXPORT_BATCH_DELAY_SECONDS,
        compression_level=config.EXPORT_COMPRESSION_LEVEL,
    )


def build_job_source(config) -> JobSource:
    """In-process queue for the embedded worker, table polling for a separate runner"""
    if config.EXPORT_WORKER_MODE == "in_process":
        return InMemoryJobQueue(idle_wait=config.EXPORT_QUEUE_IDLE_SECONDS)
    return StorePollingJobSource(SqlAlchemyUnitOfWork(AsyncSessionLocal))


job_source = build_job_source(ApplicationConfig)
_object_storage: Optional[ObjectStorage] = None


def get_object_storage() -> ObjectStorage:
    global _object_storage
    if _object_storage is None:
        _object_storage = build_object_storage(ApplicationConfig)
    return _object_storage


def get_unit_of_work() -> UnitOfWork:
    return SqlAlchemyUnitOfWork(AsyncSessionLocal)


def get_job_source() -> JobSource:
    return job_source


def get_audit_service() -> AuditService:
    if not ApplicationConfig.AUDIT_ENABLED:
        return NullAuditService()
    return MongoAuditService(mongo_client, ApplicationConfig.MONGODB_DB_NAME)


def new_process_export_use_case() -> ProcessExportJobUseCase:
    """Fresh use case (and unit of work) per job, so concurrent jobs never share a session"""
    object_storage = get_object_storage()
    return ProcessExportJobUseCase(
        uow=get_unit_of_work(),
        object_storage=object_storage,
        archive_builder=build_archive_builder(ApplicationConfig, object_storage),
        url_expiry_seconds=ApplicationConfig.EXPORT_DOWNLOAD_URL_EXPIRY_HOURS * 3600,
        progress_interval=ApplicationConfig.EXPORT_PROGRESS_INTERVAL_SECONDS,
        progress_write_timeout=ApplicationConfig.EXPORT_PROGRESS_WRITE_TIMEOUT_SECONDS,
    )


def new_sweep_expired_use_case() -> SweepExpiredExportsUseCase:
    return SweepExpiredExportsUseCase(
        get_unit_of_work(),
        get_object_storage(),
        batch_size=ApplicationConfig.EXPORT_CLEANUP_BATCH_SIZE,
    )


def new_sweep_failed_use_case() -> SweepFailedExportsUseCase:
    return SweepFailedExportsUseCase(
        get_unit_of_work(),
        get_object_storage(),
        retention_days=ApplicationConfig.EXPORT_FAILED_RETENTION_DAYS,
    )


# Security
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    Dependency to extract and validate JWT token from Authorization header

    Returns:
        dict: Decoded JWT payload with user_id

    Raises:
        HTTPException: 401 if token is missing or invalid
    """
    if ApplicationConfig.AUTH_DISABLED:
        # For testing/development - return mock user
        return {"user_id": "test-user-id"}

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_jwt(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


async def requeue_pending_exports(limit: int = 1000) -> int:
    """Hand queued rows to the in-process queue, whose contents do not survive a restart"""
    job_ids = await StorePollingJobSource(get_unit_of_work()).next_job_ids(limit)
    for job_id in job_ids:
        await job_source.submit(job_id)
    return len(job_ids)
