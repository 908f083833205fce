"""
Document-store mirror of relational identities (`users` collection).

The relational store is authoritative for identities. Writes here always come second, and a
failure is logged and left for manual reconciliation rather than undoing the relational write.
"""

from datetime import datetime
from typing import Callable, Iterable, Optional

from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.identity import Identity
from ace_mentorship.utils.week import utc_now

logger = get_logger(prefix="[UserMirror]")


class UserMirror:
    def __init__(self, db_manager: DatabaseManager, clock: Callable[[], datetime] = utc_now):
        self.db_manager = db_manager
        self.clock = clock
        self.collection_name = "users"

    @property
    def collection(self):
        return self.db_manager.get_collection(self.collection_name)

    async def upsert(self, identity: Identity) -> bool:
        now = self.clock()
        try:
            await self.collection.update_one(
                {"_id": identity.id},
                {
                    "$set": {
                        "uid": identity.external_uid,
                        "email": identity.email,
                        "name": identity.name,
                        "role": identity.role.value,
                        "family_id": identity.family_id,
                        "avatar_url": identity.avatar_url,
                        "updated_at": now,
                    },
                    "$setOnInsert": {"created_at": now},
                },
                upsert=True,
            )
            return True
        except Exception:
            logger.error("Mirror upsert failed for user %s; stores are out of sync", identity.id, exc_info=True)
            return False

    async def update_fields(self, user_id: str, **fields) -> bool:
        try:
            await self.collection.update_one({"_id": user_id}, {"$set": {**fields, "updated_at": self.clock()}})
            return True
        except Exception:
            logger.error("Mirror update failed for user %s; stores are out of sync", user_id, exc_info=True)
            return False

    async def set_family(self, user_ids: Iterable[str], family_id: Optional[str]) -> bool:
        ids = list(set(user_ids))
        if not ids:
            return True
        try:
            await self.collection.update_many(
                {"_id": {"$in": ids}}, {"$set": {"family_id": family_id, "updated_at": self.clock()}}
            )
            return True
        except Exception:
            logger.error("Mirror family update failed for %s; stores are out of sync", ids, exc_info=True)
            return False

    async def delete(self, user_id: str) -> bool:
        try:
            await self.collection.delete_one({"_id": user_id})
            return True
        except Exception:
            logger.error("Mirror delete failed for user %s; stores are out of sync", user_id, exc_info=True)
            return False
