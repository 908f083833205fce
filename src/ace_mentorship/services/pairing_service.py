"""
# Pairing Service

A pairing is one mentor and one or two mentees (`MAX_MENTEES_PER_PAIRING`), optionally inside a
family. Membership is written to the relational store first; the pairing's `pairing_points`
document and the identity mirror are secondary writes.

## Cross-store protocol

1. Relational write (pairing row, mentee links, members' `family_id`) in one commit. A failure
   here rolls all of it back and the operation returns the generic failure message.
2. Document writes (points document, user mirror). A failure here is logged as an inconsistency
   and the operation still succeeds; reconciliation is manual.
"""

from typing import Any, Dict, List, Optional, Sequence

from ace_mentorship.config import Settings
from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.database.repositories import PairingRepository, UserRepository
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.audit import AuditAction, TargetType
from ace_mentorship.models.identity import Identity
from ace_mentorship.models.pairing import PairingRecord
from ace_mentorship.models.results import ActionResult
from ace_mentorship.services.audit_service import AuditTrail
from ace_mentorship.services.authorization import require_admin
from ace_mentorship.services.mutation_pipeline import NotFoundFailure, ValidationFailure, admin_mutation
from ace_mentorship.services.points_service import PairingPointsStore
from ace_mentorship.services.user_mirror import UserMirror

logger = get_logger(prefix="[PairingService]")

PAIRING_PATHS = ["/admin/pairings", "/leaderboard"]


class PairingService:
    def __init__(
        self,
        pairings: PairingRepository,
        users: UserRepository,
        mirror: UserMirror,
        points: PairingPointsStore,
        audit: AuditTrail,
        db_manager: DatabaseManager,
        settings: Settings,
    ):
        self.pairings = pairings
        self.users = users
        self.mirror = mirror
        self.points = points
        self.audit = audit
        self.db_manager = db_manager
        self.max_mentees = settings.MAX_MENTEES_PER_PAIRING

    async def _require_family(self, family_id: Optional[str]) -> None:
        if family_id and await self.db_manager.get_collection("families").find_one({"_id": family_id}, {"_id": 1}) is None:
            raise NotFoundFailure("Family not found")

    async def _require_users(self, user_ids: Sequence[str]) -> None:
        found = {identity.id for identity in await self.users.get_many(user_ids)}
        missing = [uid for uid in user_ids if uid not in found]
        if missing:
            raise NotFoundFailure(f"User not found: {missing[0]}")

    def _validate_members(self, mentor_id: str, mentee_ids: Sequence[str]) -> List[str]:
        if not mentor_id:
            raise ValidationFailure("Mentor is required")
        mentees = list(dict.fromkeys(m for m in mentee_ids if m))
        if not mentees:
            raise ValidationFailure("At least one mentee is required")
        if len(mentees) > self.max_mentees:
            raise ValidationFailure(f"A pairing can have at most {self.max_mentees} mentees")
        if mentor_id in mentees:
            raise ValidationFailure("Mentor cannot also be a mentee")
        return mentees

    async def _sync_secondary(self, pairing: PairingRecord, member_ids: Sequence[str]) -> None:
        try:
            await self.points.ensure(pairing.id, pairing.family_id)
        except Exception:
            logger.error("Points document sync failed for pairing %s; stores are out of sync", pairing.id, exc_info=True)
        await self.mirror.set_family(member_ids, pairing.family_id)

    @admin_mutation("Failed to create pairing")
    async def create_pairing(
        self, actor: Identity, family_id: Optional[str], mentor_id: str, mentee_ids: Sequence[str]
    ) -> ActionResult:
        mentees = self._validate_members(mentor_id, mentee_ids)
        await self._require_family(family_id)
        await self._require_users([mentor_id, *mentees])

        pairing = await self.pairings.create(mentor_id, mentees, family_id=family_id, assign_family=True)
        await self._sync_secondary(pairing, pairing.member_ids)

        await self.audit.record_for(
            actor,
            AuditAction.PAIRING_CREATED,
            TargetType.PAIRING,
            pairing.id,
            f"Created pairing with {len(mentees)} mentee(s)",
            {"family_id": family_id, "mentor_id": mentor_id, "mentee_ids": mentees},
        )
        return ActionResult.ok(pairing_id=pairing.id, revalidate=PAIRING_PATHS)

    @admin_mutation("Failed to update pairing")
    async def update_pairing(
        self,
        actor: Identity,
        pairing_id: str,
        family_id: Optional[str] = None,
        mentor_id: Optional[str] = None,
        mentee_ids: Optional[Sequence[str]] = None,
    ) -> ActionResult:
        current = await self.pairings.get(pairing_id)
        if current is None:
            raise NotFoundFailure("Pairing not found")

        new_mentor = mentor_id or current.mentor_id
        new_mentees = self._validate_members(new_mentor, mentee_ids if mentee_ids is not None else current.mentee_ids)
        await self._require_family(family_id)
        await self._require_users([new_mentor, *new_mentees])

        updated = await self.pairings.update(
            pairing_id,
            mentor_id=mentor_id,
            mentee_ids=new_mentees if mentee_ids is not None else None,
            family_id=family_id,
            assign_family=True,
        )
        removed = set(current.member_ids) - set(updated.member_ids)
        if removed:
            await self.mirror.set_family(removed, None)
        await self._sync_secondary(updated, updated.member_ids)

        changes: Dict[str, Any] = {}
        if family_id:
            changes["family_id"] = family_id
        if mentor_id:
            changes["mentor_id"] = mentor_id
        if mentee_ids is not None:
            changes["mentee_ids"] = new_mentees
        await self.audit.record_for(
            actor, AuditAction.PAIRING_UPDATED, TargetType.PAIRING, pairing_id, "Pairing updated", changes
        )
        return ActionResult.ok(pairing_id=pairing_id, revalidate=PAIRING_PATHS)

    @admin_mutation("Failed to delete pairing")
    async def delete_pairing(self, actor: Identity, pairing_id: str) -> ActionResult:
        current = await self.pairings.get(pairing_id)
        if current is None:
            raise NotFoundFailure("Pairing not found")

        await self.pairings.delete(pairing_id)
        try:
            await self.points.remove(pairing_id)
        except Exception:
            logger.error("Points document removal failed for pairing %s; stores are out of sync", pairing_id, exc_info=True)

        await self.audit.record_for(
            actor,
            AuditAction.PAIRING_DELETED,
            TargetType.PAIRING,
            pairing_id,
            "Pairing deleted",
            {"family_id": current.family_id, "mentor_id": current.mentor_id, "mentee_ids": current.mentee_ids},
        )
        return ActionResult.ok(revalidate=PAIRING_PATHS)

    @admin_mutation("Failed to add mentee")
    async def add_mentee(self, actor: Identity, pairing_id: str, mentee_id: str) -> ActionResult:
        current = await self.pairings.get(pairing_id)
        if current is None:
            raise NotFoundFailure("Pairing not found")
        if mentee_id in current.mentee_ids:
            raise ValidationFailure("Mentee already in pairing")
        if mentee_id == current.mentor_id:
            raise ValidationFailure("Mentor cannot also be a mentee")
        if len(current.mentee_ids) >= self.max_mentees:
            raise ValidationFailure(f"A pairing can have at most {self.max_mentees} mentees")
        await self._require_users([mentee_id])

        await self.pairings.add_mentee(pairing_id, mentee_id, assign_family=True)
        await self.mirror.set_family([mentee_id], current.family_id)

        await self.audit.record_for(
            actor, AuditAction.MENTEE_ADDED, TargetType.PAIRING, pairing_id, "Mentee added", {"mentee_id": mentee_id}
        )
        return ActionResult.ok(revalidate=PAIRING_PATHS)

    @admin_mutation("Failed to remove mentee")
    async def remove_mentee(self, actor: Identity, pairing_id: str, mentee_id: str) -> ActionResult:
        current = await self.pairings.get(pairing_id)
        if current is None:
            raise NotFoundFailure("Pairing not found")
        if mentee_id not in current.mentee_ids:
            raise ValidationFailure("Mentee not in pairing")

        await self.pairings.remove_mentee(pairing_id, mentee_id, assign_family=True)
        await self.mirror.set_family([mentee_id], None)

        await self.audit.record_for(
            actor, AuditAction.MENTEE_REMOVED, TargetType.PAIRING, pairing_id, "Mentee removed", {"mentee_id": mentee_id}
        )
        return ActionResult.ok(revalidate=PAIRING_PATHS)

    async def list_pairings(self, actor: Optional[Identity]) -> List[Dict[str, Any]]:
        require_admin(actor)
        pairings = await self.pairings.list_all(with_people=True)
        totals = await self.points.get_all()
        return [self._with_points(p, totals.get(p.id, {})) for p in pairings]

    async def get_pairing(self, actor: Optional[Identity], pairing_id: str) -> Optional[Dict[str, Any]]:
        """Pairing with mentor, mentees, family and submissions."""
        require_admin(actor)
        pairing = await self.pairings.get(pairing_id, with_people=True)
        if pairing is None:
            return None
        totals = await self.points.get_all()
        result = self._with_points(pairing, totals.get(pairing.id, {}))
        family = None
        if pairing.family_id:
            family = await self.db_manager.get_collection("families").find_one({"_id": pairing.family_id})
        result["family"] = {"id": family["_id"], "name": family.get("name", "")} if family else None
        submissions = await self.db_manager.get_collection("submissions").find(
            {"pairing_id": pairing_id}
        ).sort("created_at", -1).to_list(length=None)
        result["submissions"] = [{**{k: v for k, v in s.items() if k != "_id"}, "id": s["_id"]} for s in submissions]
        return result

    @staticmethod
    def _with_points(pairing: PairingRecord, points_doc: Dict[str, Any]) -> Dict[str, Any]:
        data = pairing.model_dump()
        data["total_points"] = points_doc.get("total_points", 0)
        data["weekly_points"] = points_doc.get("weekly_points", 0)
        return data
