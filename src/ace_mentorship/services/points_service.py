"""
# Points Service

Point totals per pairing live in the document store's `pairing_points` collection
(`_id` = pairing id, with `family_id`, `total_points` and `weekly_points`). Pairing membership is
owned by the relational store, so every operation here that names a pairing first confirms it
exists there.

## Adjusting Points

`adjust_pairing_points(actor, pairing_id, amount, reason)`:

1. Validates in order: reason (trimmed, non-empty), pairing id, non-zero amount.
2. Confirms the pairing exists.
3. Applies `$inc` with `find_one_and_update(..., upsert=True, return_document=BEFORE)`. The
   increment is a single atomic document update, so concurrent adjustments on one pairing can no
   longer lose each other's writes. `previous_points` is the value before this increment and
   `new_points = previous_points + amount`.
4. Records `POINTS_ADDED` / `POINTS_DEDUCTED` with
   `{previous_points, adjustment, new_points, actor_name, actor_email}`.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo import ReturnDocument

from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.database.repositories import PairingRepository
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.audit import AuditAction, AuditEntry, AuditQuery, TargetType
from ace_mentorship.models.identity import Identity
from ace_mentorship.models.pairing import PairingStanding
from ace_mentorship.models.results import ActionResult
from ace_mentorship.services.audit_service import AuditTrail
from ace_mentorship.services.authorization import require_admin
from ace_mentorship.services.mutation_pipeline import NotFoundFailure, ValidationFailure, admin_mutation
from ace_mentorship.utils.week import utc_now

logger = get_logger(prefix="[PointsService]")

POINTS_PATHS = ["/admin/points", "/admin", "/leaderboard"]


class PairingPointsStore:
    """Sole writer of the `pairing_points` collection."""

    def __init__(self, db_manager: DatabaseManager, clock: Callable[[], datetime] = utc_now):
        self.db_manager = db_manager
        self.clock = clock
        self.collection_name = "pairing_points"

    @property
    def collection(self):
        return self.db_manager.get_collection(self.collection_name)

    async def ensure(self, pairing_id: str, family_id: Optional[str]) -> None:
        """Create the points document if missing and keep its `family_id` in step."""
        now = self.clock()
        await self.collection.update_one(
            {"_id": pairing_id},
            {
                "$set": {"family_id": family_id, "updated_at": now},
                "$setOnInsert": {"total_points": 0, "weekly_points": 0, "created_at": now},
            },
            upsert=True,
        )

    async def ensure_many(self, pairings: List[Dict[str, Any]]) -> None:
        for item in pairings:
            await self.ensure(item["id"], item.get("family_id"))

    async def increment(
        self, pairing_id: str, total: int, weekly: int = 0, session: Optional[AsyncIOMotorClientSession] = None
    ) -> Dict[str, Any]:
        """Atomically add to the totals; returns the document as it was before."""
        before = await self.collection.find_one_and_update(
            {"_id": pairing_id},
            {
                "$inc": {"total_points": total, "weekly_points": weekly},
                "$set": {"updated_at": self.clock()},
            },
            upsert=True,
            return_document=ReturnDocument.BEFORE,
            session=session,
        )
        return before or {}

    async def remove(self, pairing_id: str) -> None:
        await self.collection.delete_one({"_id": pairing_id})

    async def get_all(self) -> Dict[str, Dict[str, Any]]:
        docs = await self.collection.find({}).to_list(length=None)
        return {doc["_id"]: doc for doc in docs}

    async def reset_weekly(self) -> int:
        result = await self.collection.update_many({}, {"$set": {"weekly_points": 0, "updated_at": self.clock()}})
        return result.modified_count


class PointsService:
    def __init__(
        self,
        points: PairingPointsStore,
        pairings: PairingRepository,
        audit: AuditTrail,
        db_manager: DatabaseManager,
    ):
        self.points = points
        self.pairings = pairings
        self.audit = audit
        self.db_manager = db_manager

    @admin_mutation("Failed to adjust points")
    async def adjust_pairing_points(self, actor: Identity, pairing_id: str, amount: int, reason: str) -> ActionResult:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationFailure("Reason is required for point adjustments")
        if not pairing_id:
            raise ValidationFailure("Pairing ID is required")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
            raise ValidationFailure("Amount must be non-zero")

        if not await self.pairings.exists(pairing_id):
            raise NotFoundFailure("Pairing not found")

        before = await self.points.increment(pairing_id, amount)
        previous_points = before.get("total_points", 0)
        new_points = previous_points + amount

        await self.audit.record_for(
            actor,
            AuditAction.POINTS_ADDED if amount > 0 else AuditAction.POINTS_DEDUCTED,
            TargetType.PAIRING,
            pairing_id,
            reason,
            {
                "previous_points": previous_points,
                "adjustment": amount,
                "new_points": new_points,
                "actor_name": actor.name,
                "actor_email": actor.email,
            },
        )
        logger.info(f"Pairing {pairing_id} adjusted by {amount}: {previous_points} -> {new_points}")
        return ActionResult.ok(previous_points=previous_points, new_points=new_points, revalidate=POINTS_PATHS)

    async def get_points_history(
        self, actor: Optional[Identity], pairing_id: Optional[str] = None, limit: int = 50
    ) -> List[AuditEntry]:
        """Point adjustments and other pairing audit entries, newest first."""
        require_admin(actor)
        if pairing_id:
            return await self.audit.history_for(TargetType.PAIRING, pairing_id, limit=limit)
        return await self.audit.list_entries(AuditQuery(limit=limit, target_type=TargetType.PAIRING.value))

    async def list_pairing_standings(self, actor: Optional[Identity]) -> List[PairingStanding]:
        require_admin(actor)
        return await self.pairing_standings()

    async def pairing_standings(self) -> List[PairingStanding]:
        """Every pairing with mentor and family names, highest total first."""
        pairings = await self.pairings.list_all(with_people=True)
        totals = await self.points.get_all()
        family_ids = list({p.family_id for p in pairings if p.family_id})
        families = await self.db_manager.get_collection("families").find(
            {"_id": {"$in": family_ids}}, {"name": 1}
        ).to_list(length=None)
        family_names = {doc["_id"]: doc.get("name", "Unknown") for doc in families}

        standings = []
        for pairing in pairings:
            doc = totals.get(pairing.id, {})
            standings.append(
                PairingStanding(
                    id=pairing.id,
                    family_id=pairing.family_id,
                    family_name=family_names.get(pairing.family_id, "Unknown") if pairing.family_id else None,
                    mentor_id=pairing.mentor_id,
                    mentor_name=pairing.mentor.name if pairing.mentor else "Unknown",
                    mentee_names=[m.name for m in pairing.mentees],
                    total_points=doc.get("total_points", 0),
                    weekly_points=doc.get("weekly_points", 0),
                )
            )
        return sorted(standings, key=lambda s: s.total_points, reverse=True)
