"""
Bonus activity catalog (`bonus_activities` collection).

Submissions reference active bonus activities by id; their points are added on top of the base
points when the submission is created.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Union
from uuid import uuid4

from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.announcement import BonusActivity, BonusActivityUpdate
from ace_mentorship.models.audit import AuditAction, TargetType
from ace_mentorship.models.identity import Identity
from ace_mentorship.models.results import ActionResult
from ace_mentorship.services.audit_service import AuditTrail
from ace_mentorship.services.mutation_pipeline import NotFoundFailure, ValidationFailure, admin_mutation, parse_update
from ace_mentorship.utils.week import utc_now

logger = get_logger(prefix="[BonusService]")

BONUS_PATHS = ["/admin/bonuses", "/dashboard/submit"]
UPDATABLE_FIELDS = {"name", "description", "points", "is_active"}


def _validate_points(points: Any) -> int:
    if isinstance(points, bool) or not isinstance(points, int) or points < 0:
        raise ValidationFailure("Points must be a non-negative integer")
    return points


class BonusService:
    def __init__(self, db_manager: DatabaseManager, audit: AuditTrail, clock: Callable[[], datetime] = utc_now):
        self.db_manager = db_manager
        self.audit = audit
        self.clock = clock
        self.collection_name = "bonus_activities"

    @property
    def collection(self):
        return self.db_manager.get_collection(self.collection_name)

    @admin_mutation("Failed to create bonus activity")
    async def create_bonus_activity(self, actor: Identity, name: str, description: str, points: int) -> ActionResult:
        name = (name or "").strip()
        if not name:
            raise ValidationFailure("Name is required")
        points = _validate_points(points)

        now = self.clock()
        bonus_id = uuid4().hex
        await self.collection.insert_one(
            {
                "_id": bonus_id,
                "name": name,
                "description": (description or "").strip(),
                "points": points,
                "is_active": True,
                "created_at": now,
                "updated_at": now,
            }
        )
        await self.audit.record_for(
            actor, AuditAction.BONUS_CREATED, TargetType.BONUS_ACTIVITY, bonus_id, f"Created bonus: {name}", {"points": points}
        )
        return ActionResult.ok(id=bonus_id, revalidate=BONUS_PATHS)

    @admin_mutation("Failed to update bonus activity")
    async def update_bonus_activity(
        self, actor: Identity, bonus_id: str, updates: Union[BonusActivityUpdate, Dict[str, Any]]
    ) -> ActionResult:
        if await self.collection.find_one({"_id": bonus_id}, {"_id": 1}) is None:
            raise NotFoundFailure("Bonus activity not found")

        fields = parse_update(BonusActivityUpdate, updates)
        changes = {key: value for key, value in fields.items() if key in UPDATABLE_FIELDS}
        if "name" in changes:
            changes["name"] = (changes["name"] or "").strip()
            if not changes["name"]:
                raise ValidationFailure("Name is required")
        if "points" in changes:
            changes["points"] = _validate_points(changes["points"])
        if changes.get("is_active", False) is None:
            raise ValidationFailure("Active flag must be true or false")
        if not changes:
            raise ValidationFailure("No valid fields to update")

        await self.collection.update_one({"_id": bonus_id}, {"$set": {**changes, "updated_at": self.clock()}})
        await self.audit.record_for(
            actor,
            AuditAction.BONUS_UPDATED,
            TargetType.BONUS_ACTIVITY,
            bonus_id,
            "Updated bonus activity",
            {"fields": sorted(changes)},
        )
        return ActionResult.ok(revalidate=BONUS_PATHS)

    @admin_mutation("Failed to delete bonus activity")
    async def delete_bonus_activity(self, actor: Identity, bonus_id: str) -> ActionResult:
        if await self.collection.find_one({"_id": bonus_id}, {"_id": 1}) is None:
            raise NotFoundFailure("Bonus activity not found")

        await self.collection.delete_one({"_id": bonus_id})
        await self.audit.record_for(
            actor, AuditAction.BONUS_DELETED, TargetType.BONUS_ACTIVITY, bonus_id, "Deleted bonus activity"
        )
        return ActionResult.ok(revalidate=BONUS_PATHS)

    async def list_bonus_activities(self, active_only: bool = False) -> List[BonusActivity]:
        query = {"is_active": True} if active_only else {}
        docs = await self.collection.find(query).sort("created_at", -1).to_list(length=None)
        return [BonusActivity.from_document(doc) for doc in docs]

    async def get_active(self, bonus_ids: Iterable[str]) -> List[BonusActivity]:
        ids = list(dict.fromkeys(bonus_ids))
        if not ids:
            return []
        docs = await self.collection.find({"_id": {"$in": ids}, "is_active": True}).to_list(length=None)
        return [BonusActivity.from_document(doc) for doc in docs]
