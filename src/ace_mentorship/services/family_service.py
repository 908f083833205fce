"""
# Family Service

Families are document-store records (`families` collection). Two things about them are never
stored but always projected on read:

- **Membership**: the union of the family's heads, its aunts/uncles, and every mentor and mentee
  of pairings whose `family_id` matches. Someone who is both a head and a mentor counts once.
- **Points**: the sum of the family's pairing totals.

## Family Heads

`family_head_ids` is the only stored representation. Updates that still send the legacy
single-head `family_head_id` are converted into the list form, and every update unsets the legacy
field so the two can never diverge. `FamilyHeadsMigration` normalizes documents written before.

## Deletion

Deleting a family does not check for pairings that still reference it. The number of pairings
left pointing at the deleted family is recorded in the audit metadata.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union
from uuid import uuid4

from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.database.repositories import PairingRepository, UserRepository
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.audit import AuditAction, TargetType
from ace_mentorship.models.family import FamilyUpdate, FamilyView
from ace_mentorship.models.identity import Identity
from ace_mentorship.models.pairing import PairingRecord
from ace_mentorship.models.results import ActionResult
from ace_mentorship.services.audit_service import AuditTrail
from ace_mentorship.services.authorization import require_admin
from ace_mentorship.services.mutation_pipeline import NotFoundFailure, ValidationFailure, admin_mutation, parse_update
from ace_mentorship.services.points_service import PairingPointsStore
from ace_mentorship.utils.week import utc_now

logger = get_logger(prefix="[FamilyService]")

FAMILY_PATHS = ["/admin/families", "/leaderboard"]
UPDATABLE_FIELDS = {"name", "is_archived", "family_head_ids", "aunt_uncle_ids"}
LEGACY_HEAD_FIELD = "family_head_id"


def derive_member_ids(
    family_head_ids: Iterable[str], aunt_uncle_ids: Iterable[str], pairings: Iterable[PairingRecord]
) -> Set[str]:
    """Distinct identities belonging to a family."""
    members = set(family_head_ids) | set(aunt_uncle_ids)
    for pairing in pairings:
        members.update(pairing.member_ids)
    return members


def _unique(ids: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(i for i in ids if i))


class FamilyService:
    def __init__(
        self,
        db_manager: DatabaseManager,
        pairings: PairingRepository,
        users: UserRepository,
        points: PairingPointsStore,
        audit: AuditTrail,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db_manager = db_manager
        self.pairings = pairings
        self.users = users
        self.points = points
        self.audit = audit
        self.clock = clock
        self.collection_name = "families"

    @property
    def collection(self):
        return self.db_manager.get_collection(self.collection_name)

    async def exists(self, family_id: str) -> bool:
        return await self.collection.find_one({"_id": family_id}, {"_id": 1}) is not None

    @admin_mutation("Failed to create family")
    async def create_family(
        self,
        actor: Identity,
        name: str,
        family_head_ids: Optional[List[str]] = None,
        aunt_uncle_ids: Optional[List[str]] = None,
    ) -> ActionResult:
        name = (name or "").strip()
        if not name:
            raise ValidationFailure("Family name is required")

        now = self.clock()
        family_id = uuid4().hex
        await self.collection.insert_one(
            {
                "_id": family_id,
                "name": name,
                "is_archived": False,
                "member_ids": [],
                "family_head_ids": _unique(family_head_ids or []),
                "aunt_uncle_ids": _unique(aunt_uncle_ids or []),
                "created_at": now,
                "updated_at": now,
            }
        )
        await self.audit.record_for(actor, AuditAction.FAMILY_CREATED, TargetType.FAMILY, family_id, f"Created family {name}")
        return ActionResult.ok(family_id=family_id, revalidate=FAMILY_PATHS)

    @admin_mutation("Failed to update family")
    async def update_family(
        self, actor: Identity, family_id: str, updates: Union[FamilyUpdate, Dict[str, Any]]
    ) -> ActionResult:
        if not await self.exists(family_id):
            raise NotFoundFailure("Family not found")

        fields = parse_update(FamilyUpdate, updates)
        changes = {key: value for key, value in fields.items() if key in UPDATABLE_FIELDS}
        if LEGACY_HEAD_FIELD in fields and "family_head_ids" not in changes:
            legacy = fields[LEGACY_HEAD_FIELD]
            changes["family_head_ids"] = [legacy] if legacy else []
        if "name" in changes:
            changes["name"] = (changes["name"] or "").strip()
            if not changes["name"]:
                raise ValidationFailure("Family name is required")
        if changes.get("is_archived", False) is None:
            raise ValidationFailure("Archived flag must be true or false")
        for key in ("family_head_ids", "aunt_uncle_ids"):
            if key in changes:
                changes[key] = _unique(changes[key] or [])
        if not changes:
            raise ValidationFailure("No valid fields to update")

        await self.collection.update_one(
            {"_id": family_id},
            {"$set": {**changes, "updated_at": self.clock()}, "$unset": {LEGACY_HEAD_FIELD: ""}},
        )
        await self.audit.record_for(
            actor,
            AuditAction.FAMILY_UPDATED,
            TargetType.FAMILY,
            family_id,
            "Family updated",
            {"fields": sorted(changes)},
        )
        return ActionResult.ok(revalidate=FAMILY_PATHS)

    @admin_mutation("Failed to delete family")
    async def delete_family(self, actor: Identity, family_id: str) -> ActionResult:
        family = await self.collection.find_one({"_id": family_id})
        if family is None:
            raise NotFoundFailure("Family not found")

        orphaned = await self.pairings.count_by_family(family_id)
        await self.collection.delete_one({"_id": family_id})
        if orphaned:
            logger.warning(f"Deleted family {family_id} still referenced by {orphaned} pairings")
        await self.audit.record_for(
            actor,
            AuditAction.FAMILY_DELETED,
            TargetType.FAMILY,
            family_id,
            f"Deleted family {family.get('name', '')}",
            {"orphaned_pairings": orphaned},
        )
        return ActionResult.ok(revalidate=FAMILY_PATHS)

    async def build_views(self, docs: List[Dict[str, Any]]) -> List[FamilyView]:
        """Project membership, names and points for family documents."""
        all_pairings = await self.pairings.list_all()
        totals = await self.points.get_all()

        person_ids: Set[str] = set()
        for doc in docs:
            person_ids.update(doc.get("family_head_ids") or [])
            person_ids.update(doc.get("aunt_uncle_ids") or [])
        names = {identity.id: identity.name for identity in await self.users.get_many(person_ids)}

        views = []
        for doc in docs:
            head_ids = doc.get("family_head_ids") or []
            aunt_ids = doc.get("aunt_uncle_ids") or []
            family_pairings = [p for p in all_pairings if p.family_id == doc["_id"]]
            views.append(
                FamilyView(
                    id=doc["_id"],
                    name=doc.get("name", ""),
                    is_archived=bool(doc.get("is_archived")),
                    family_head_ids=head_ids,
                    aunt_uncle_ids=aunt_ids,
                    head_names=[names.get(i, "Unknown") for i in head_ids],
                    aunt_uncle_names=[names.get(i, "Unknown") for i in aunt_ids],
                    member_count=len(derive_member_ids(head_ids, aunt_ids, family_pairings)),
                    total_points=sum(totals.get(p.id, {}).get("total_points", 0) for p in family_pairings),
                    weekly_points=sum(totals.get(p.id, {}).get("weekly_points", 0) for p in family_pairings),
                    created_at=doc.get("created_at"),
                    updated_at=doc.get("updated_at"),
                )
            )
        return views

    async def list_families(self, actor: Optional[Identity], include_archived: bool = False) -> List[FamilyView]:
        require_admin(actor)
        query = {} if include_archived else {"is_archived": {"$ne": True}}
        docs = await self.collection.find(query).sort("created_at", -1).to_list(length=None)
        return await self.build_views(docs)

    async def get_family(self, actor: Optional[Identity], family_id: str) -> Optional[FamilyView]:
        require_admin(actor)
        doc = await self.collection.find_one({"_id": family_id})
        if doc is None:
            return None
        return (await self.build_views([doc]))[0]
