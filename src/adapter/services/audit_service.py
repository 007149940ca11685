import logging
from typing import Dict, Any
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError
from src.app.services.audit_service import AuditService
from src.domain.base import utc_now

logger = logging.getLogger(__name__)


class MongoAuditService(AuditService):
    """
    MongoDB implementation of AuditService

    Audit writes happen after the export state is committed, so a Mongo
    outage is logged and never turns a successful request into an error.
    """

    def __init__(self, mongo_client: AsyncIOMotorClient, db_name: str, collection_name: str = "export_audit_events"):
        self.client = mongo_client
        self.db = self.client[db_name]
        self.collection = self.db[collection_name]

    async def log_event(
        self,
        event_type: str,
        user_id: str,
        resource_type: str,
        resource_id: str,
        metadata: Dict[str, Any] = None,
    ) -> None:
        """Log an audit event to MongoDB"""
        event = {
            "event_type": event_type,
            "user_id": user_id,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "metadata": metadata or {},
            "timestamp": utc_now(),
        }
        try:
            await self.collection.insert_one(event)
        except PyMongoError as e:
            logger.warning(f"[Audit] Could not record {event_type} for {resource_id}: {e}")
