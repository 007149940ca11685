from abc import ABC, abstractmethod
from typing import Dict, Any


class AuditService(ABC):
    """Service interface for audit event logging"""

    @abstractmethod
    async def log_event(
        self,
        event_type: str,
        user_id: str,
        resource_type: str,
        resource_id: str,
        metadata: Dict[str, Any] = None,
    ) -> None:
        """
        Log an audit event

        Args:
            event_type: Type of event (e.g. "export_requested")
            user_id: User who triggered the event
            resource_type: Type of resource (e.g. "album_export")
            resource_id: ID of the affected resource
            metadata: Additional event metadata
        """
        pass


class NullAuditService(AuditService):
    """Audit sink used when auditing is disabled"""

    async def log_event(
        self,
        event_type: str,
        user_id: str,
        resource_type: str,
        resource_id: str,
        metadata: Dict[str, Any] = None,
    ) -> None:
        return None
