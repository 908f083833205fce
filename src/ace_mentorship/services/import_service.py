"""
# Bulk Import Service

Admin bulk import of users and pairings from pre-parsed rows.

## Row Processing

Rows are processed sequentially. Every row either contributes to the batch or adds a message to
`ImportStats.errors`; one bad row never aborts the others. Email lookups for the whole batch are
resolved up front with a single read (`find_by_emails`), which is side-effect free.

## Commit

The accumulated batch is written to the relational store in one transaction
(`bulk_create` / `upsert_many`, the latter together with the members' `family_id`). An empty
batch performs no write at all. Document-store follow-ups (identity mirror, `pairing_points`
documents) run after the commit and only log on failure.

## User Rows

Imported users get no identity-provider account. Their first sign-in links the provider account
by email (`SessionService.sync_session`).

## Pairing Rows

- Mentor and first mentee email are required.
- A mentee whose email does not resolve is skipped with a warning; the row still succeeds with the
  mentees that did resolve.
- A row with no resolved mentee fails entirely.
- The pairing id is `pairing_<mentor id>`, so re-importing a mentor merges into the same pairing.
- A second row for a mentor already in the batch fails.

Both imports are rate limited per admin (`IMPORT_RATE_LIMIT` per `IMPORT_RATE_WINDOW`).
"""

from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from ace_mentorship.config import Settings
from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.database.repositories import PairingRepository, UserRepository, normalize_email
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.audit import AuditAction, TargetType
from ace_mentorship.models.identity import Identity, Role
from ace_mentorship.models.imports import ImportStats, PairingImportRow, UserImportRow
from ace_mentorship.models.results import ActionResult
from ace_mentorship.services.audit_service import AuditTrail
from ace_mentorship.services.mutation_pipeline import MutationRejected, admin_mutation
from ace_mentorship.services.points_service import PairingPointsStore
from ace_mentorship.services.rate_limiter import RateLimiter
from ace_mentorship.services.user_mirror import UserMirror

logger = get_logger(prefix="[ImportService]")

IMPORT_PATHS = ["/admin/users", "/admin/pairings", "/admin/import"]
RATE_LIMITED_MESSAGE = "Too many import requests. Please try again later."


class ImportService:
    def __init__(
        self,
        users: UserRepository,
        pairings: PairingRepository,
        mirror: UserMirror,
        points: PairingPointsStore,
        rate_limiter: RateLimiter,
        audit: AuditTrail,
        db_manager: DatabaseManager,
        settings: Settings,
    ):
        self.users = users
        self.pairings = pairings
        self.mirror = mirror
        self.points = points
        self.rate_limiter = rate_limiter
        self.audit = audit
        self.db_manager = db_manager
        self.settings = settings

    async def _check_rate_limit(self, actor: Identity) -> None:
        result = await self.rate_limiter.check(
            f"import:{actor.id}", self.settings.IMPORT_RATE_LIMIT, self.settings.IMPORT_RATE_WINDOW
        )
        if not result.success:
            raise MutationRejected(RATE_LIMITED_MESSAGE)

    @admin_mutation("Failed to import users")
    async def import_users(self, actor: Identity, rows: Sequence[UserImportRow]) -> ActionResult:
        await self._check_rate_limit(actor)
        stats = ImportStats(total=len(rows))
        existing = await self.users.find_by_emails(row.email for row in rows if row.email)
        seen = set()
        batch: List[Dict[str, Any]] = []

        for index, row in enumerate(rows, start=1):
            name = (row.name or "").strip()
            email = normalize_email(row.email or "")
            role_value = (row.role or "").strip().upper()
            if not email or not name or not role_value:
                stats.failed += 1
                stats.errors.append(f"Missing required fields for {email or 'unknown user'}")
                continue
            if "@" not in email:
                stats.failed += 1
                stats.errors.append(f"Row {index}: Invalid email \"{email}\"")
                continue
            try:
                role = Role(role_value)
            except ValueError:
                stats.failed += 1
                stats.errors.append(f"Row {index}: Invalid role \"{role_value}\" for {email}")
                continue
            if email in existing or email in seen:
                stats.failed += 1
                stats.errors.append(f"User {email} already exists, skipped")
                continue

            seen.add(email)
            batch.append({"id": uuid4().hex, "email": email, "name": name, "role": role})
            stats.success += 1

        created = await self.users.bulk_create(batch)
        for identity in created:
            await self.mirror.upsert(identity)

        if created:
            await self.audit.record_for(
                actor,
                AuditAction.USERS_IMPORTED,
                TargetType.IMPORT,
                uuid4().hex,
                f"Imported {stats.success} of {stats.total} users",
                {"success": stats.success, "failed": stats.failed},
            )
        logger.info(f"User import: {stats.success} imported, {stats.failed} failed")
        return ActionResult.ok(stats=stats.model_dump(), revalidate=IMPORT_PATHS)

    async def _family_exists(self, family_id: str) -> bool:
        return await self.db_manager.get_collection("families").find_one({"_id": family_id}, {"_id": 1}) is not None

    @admin_mutation("Failed to import pairings")
    async def import_pairings(self, actor: Identity, rows: Sequence[PairingImportRow]) -> ActionResult:
        await self._check_rate_limit(actor)
        stats = ImportStats(total=len(rows))
        emails = [e for row in rows for e in (row.mentor_email, row.mentee1_email, row.mentee2_email) if e]
        known = await self.users.find_by_emails(emails)
        known_families: Dict[str, bool] = {}
        batch: Dict[str, Dict[str, Any]] = {}

        for row in rows:
            if not row.mentor_email or not row.mentee1_email:
                stats.failed += 1
                stats.errors.append("Missing mentor or mentee email for row")
                continue

            mentor = known.get(normalize_email(row.mentor_email))
            if mentor is None:
                stats.failed += 1
                stats.errors.append(f"Mentor {row.mentor_email} not found")
                continue

            family_id: Optional[str] = (row.family_id or "").strip() or None
            if family_id:
                if family_id not in known_families:
                    known_families[family_id] = await self._family_exists(family_id)
                if not known_families[family_id]:
                    stats.failed += 1
                    stats.errors.append(f"Family {family_id} not found for mentor {row.mentor_email}")
                    continue

            mentee_ids: List[str] = []
            for raw in (row.mentee1_email, row.mentee2_email):
                if not raw:
                    continue
                email = normalize_email(raw)
                mentee = known.get(email)
                if mentee is None:
                    stats.errors.append(f"Warning: Mentee {email} not found, skipping only this mentee")
                    continue
                if mentee.id == mentor.id or mentee.id in mentee_ids:
                    stats.errors.append(f"Warning: Mentee {email} duplicates another member, skipping only this mentee")
                    continue
                mentee_ids.append(mentee.id)

            if not mentee_ids:
                stats.failed += 1
                stats.errors.append(f"No valid mentees found for mentor {row.mentor_email}")
                continue

            pairing_id = f"pairing_{mentor.id}"
            if pairing_id in batch:
                stats.failed += 1
                stats.errors.append(f"Mentor {row.mentor_email} appears more than once in this import, skipped")
                continue
            batch[pairing_id] = {
                "id": pairing_id,
                "mentor_id": mentor.id,
                "mentee_ids": mentee_ids[: self.settings.MAX_MENTEES_PER_PAIRING],
                "family_id": family_id,
            }
            stats.success += 1

        records = await self.pairings.upsert_many(list(batch.values()), assign_family=True)
        for record in records:
            if record.family_id:
                await self.mirror.set_family(record.member_ids, record.family_id)
            try:
                await self.points.ensure(record.id, record.family_id)
            except Exception:
                logger.error("Points document sync failed for imported pairing %s", record.id, exc_info=True)

        if records:
            await self.audit.record_for(
                actor,
                AuditAction.PAIRINGS_IMPORTED,
                TargetType.IMPORT,
                uuid4().hex,
                f"Imported {stats.success} of {stats.total} pairings",
                {"success": stats.success, "failed": stats.failed, "pairing_ids": [r.id for r in records]},
            )
        logger.info(f"Pairing import: {stats.success} imported, {stats.failed} failed")
        return ActionResult.ok(stats=stats.model_dump(), revalidate=IMPORT_PATHS)
