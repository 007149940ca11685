from src.adapter.services.audit_service import MongoAuditService
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.adapter.services.s3_object_storage import S3ObjectStorage
from src.adapter.services.local_object_storage import LocalObjectStorage
from src.adapter.services.in_memory_job_queue import InMemoryJobQueue
from src.adapter.services.store_polling_job_source import StorePollingJobSource

__all__ = [
    "MongoAuditService",
    "SqlAlchemyUnitOfWork",
    "S3ObjectStorage",
    "LocalObjectStorage",
    "InMemoryJobQueue",
    "StorePollingJobSource",
]
