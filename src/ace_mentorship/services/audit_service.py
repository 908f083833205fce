"""
# Audit Trail

Append-only log of administrative actions, stored in the `audit_logs` collection.

## Write Policy

`record()` is best effort. With `AUDIT_FAIL_SILENTLY=True` (the default) a failed insert is logged
with its traceback and swallowed, so the mutation that triggered it still reports success. Set the
flag to `False` to surface audit failures instead.

## Query

`list_entries()` returns entries newest first, optionally filtered by actor, action or target.
`history_for(target_type, target_id)` is the per-entity history view.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union
from uuid import uuid4

from ace_mentorship.config import Settings
from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.audit import AuditAction, AuditEntry, AuditQuery, TargetType
from ace_mentorship.models.identity import Identity
from ace_mentorship.utils.week import utc_now

logger = get_logger(prefix="[AuditTrail]")

UNKNOWN_ACTOR_EMAIL = "Unknown"


class AuditTrail:
    def __init__(self, db_manager: DatabaseManager, settings: Settings, clock: Callable[[], datetime] = utc_now):
        self.db_manager = db_manager
        self.settings = settings
        self.clock = clock
        self.collection_name = "audit_logs"

    async def record(
        self,
        actor_id: str,
        action: Union[AuditAction, str],
        target_type: Union[TargetType, str],
        target_id: str,
        details: str,
        metadata: Optional[Dict[str, Any]] = None,
        actor_email: Optional[str] = None,
    ) -> None:
        entry = {
            "_id": uuid4().hex,
            "actor_id": actor_id,
            "actor_email": actor_email or UNKNOWN_ACTOR_EMAIL,
            "action": AuditAction(action).value,
            "target_type": TargetType(target_type).value,
            "target_id": target_id,
            "details": details,
            "metadata": metadata or {},
            "timestamp": self.clock(),
        }
        try:
            await self.db_manager.get_collection(self.collection_name).insert_one(entry)
            logger.info(f"{entry['action']} on {entry['target_type']}:{target_id} by {actor_id}")
        except Exception:
            if not self.settings.AUDIT_FAIL_SILENTLY:
                raise
            logger.error(
                "Failed to record audit entry %s for %s:%s", entry["action"], entry["target_type"], target_id,
                exc_info=True,
            )

    async def record_for(
        self,
        actor: Identity,
        action: Union[AuditAction, str],
        target_type: Union[TargetType, str],
        target_id: str,
        details: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """`record()` with actor id and email taken from the verified identity."""
        await self.record(actor.id, action, target_type, target_id, details, metadata, actor_email=actor.email)

    async def list_entries(self, query: Optional[AuditQuery] = None) -> List[AuditEntry]:
        query = query or AuditQuery(limit=self.settings.AUDIT_LOG_DEFAULT_LIMIT)
        filters: Dict[str, Any] = {}
        if query.target_type:
            filters["target_type"] = query.target_type
            if query.target_id:
                filters["target_id"] = query.target_id
        if query.actor_id:
            filters["actor_id"] = query.actor_id
        if query.action:
            filters["action"] = query.action

        collection = self.db_manager.get_collection(self.collection_name)
        cursor = collection.find(filters).sort("timestamp", -1).limit(query.limit)
        docs = await cursor.to_list(length=query.limit)
        return [AuditEntry.from_document(doc) for doc in docs]

    async def history_for(self, target_type: Union[TargetType, str], target_id: str, limit: int = 50) -> List[AuditEntry]:
        return await self.list_entries(
            AuditQuery(limit=limit, target_type=TargetType(target_type).value, target_id=target_id)
        )
