"""
# Submission Service

Weekly photo submissions from pairings.

## Flow

1. `upload_submission_image` validates type and size and stores the image at
   `submissions/<user id>/<epoch millis>.<ext>`.
2. `create_submission` resolves the caller's pairing (as mentor or mentee), prices the submission
   (`SUBMISSION_BASE_POINTS` plus the points of every *active* bonus activity claimed) and stores
   it as `PENDING`.
3. An admin reviews it:
   - `approve_submission` moves it to `APPROVED` and atomically adds its points to the pairing's
     total and weekly points.
   - `reject_submission` requires a reason, moves it to `REJECTED` and zeroes its points.

Review is a compare-and-set on `status == PENDING`, so a submission can be reviewed once even
when two admins act at the same moment. The claim and the point credit share one transaction
when the deployment supports it; otherwise a failed credit puts the submission back to `PENDING`
so the approval can be retried.
"""

import time
from datetime import datetime
from typing import Callable, List, Optional, Sequence
from uuid import uuid4

from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo import ReturnDocument

from ace_mentorship.config import Settings
from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.database.repositories import PairingRepository
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.audit import AuditAction, TargetType
from ace_mentorship.models.identity import Identity
from ace_mentorship.models.media import Submission, SubmissionStatus
from ace_mentorship.models.results import ActionResult
from ace_mentorship.services.audit_service import AuditTrail
from ace_mentorship.services.authorization import require_admin, require_auth
from ace_mentorship.services.blob_storage import BlobStore, BlobStoreError
from ace_mentorship.services.bonus_service import BonusService
from ace_mentorship.services.mutation_pipeline import (
    NotFoundFailure,
    ValidationFailure,
    admin_mutation,
    authenticated_mutation,
)
from ace_mentorship.services.points_service import PairingPointsStore
from ace_mentorship.utils.week import get_current_week, utc_now

logger = get_logger(prefix="[SubmissionService]")

REVIEW_PATHS = ["/admin/submissions", "/leaderboard"]
SUBMITTER_PATHS = ["/dashboard", "/dashboard/submissions"]
ALREADY_REVIEWED = "Submission has already been reviewed"


class SubmissionService:
    def __init__(
        self,
        db_manager: DatabaseManager,
        pairings: PairingRepository,
        bonuses: BonusService,
        points: PairingPointsStore,
        blob_store: BlobStore,
        audit: AuditTrail,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db_manager = db_manager
        self.pairings = pairings
        self.bonuses = bonuses
        self.points = points
        self.blob_store = blob_store
        self.audit = audit
        self.settings = settings
        self.clock = clock
        self.collection_name = "submissions"

    @property
    def collection(self):
        return self.db_manager.get_collection(self.collection_name)

    @authenticated_mutation("Failed to upload image. Please try again.")
    async def upload_submission_image(
        self, actor: Identity, data: bytes, filename: str, content_type: str
    ) -> ActionResult:
        if not data:
            raise ValidationFailure("No file provided")
        if content_type not in self.settings.allowed_content_types:
            raise ValidationFailure("Invalid file type. Please upload JPG, PNG, WebP, or HEIC.")
        if len(data) > self.settings.SUBMISSION_MAX_UPLOAD_BYTES:
            max_mb = self.settings.SUBMISSION_MAX_UPLOAD_BYTES // (1024 * 1024)
            raise ValidationFailure(f"File too large. Maximum size is {max_mb}MB.")

        extension = filename.rsplit(".", 1)[-1].lower() if filename and "." in filename else "jpg"
        path = f"submissions/{actor.id}/{int(time.time() * 1000)}.{extension}"
        try:
            uploaded = await self.blob_store.upload(data, path, content_type)
        except BlobStoreError:
            raise ValidationFailure("Failed to upload image. Please try again.")
        return ActionResult.ok(image_url=uploaded.url, image_path=uploaded.path)

    @authenticated_mutation("Failed to create submission. Please try again.")
    async def create_submission(
        self,
        actor: Identity,
        image_url: str,
        image_path: str,
        bonus_activity_ids: Sequence[str] = (),
        description: Optional[str] = None,
        week_number: Optional[int] = None,
        year: Optional[int] = None,
    ) -> ActionResult:
        if not image_url or not image_path:
            raise ValidationFailure("An uploaded image is required")
        if not image_path.startswith(f"submissions/{actor.id}/"):
            raise ValidationFailure("Image does not belong to the current user")

        pairing = await self.pairings.find_for_member(actor.id)
        if pairing is None:
            raise ValidationFailure("You are not part of a pairing yet. Please contact an admin.")

        now = self.clock()
        if week_number is None or year is None:
            week_number, year = get_current_week(
                now, self.settings.SEMESTER_START_DATE, self.settings.SEMESTER_TIMEZONE
            )

        bonuses = await self.bonuses.get_active(bonus_activity_ids)
        base_points = self.settings.SUBMISSION_BASE_POINTS
        bonus_points = sum(b.points for b in bonuses)

        submission_id = uuid4().hex
        await self.collection.insert_one(
            {
                "_id": submission_id,
                "pairing_id": pairing.id,
                "submitter_id": actor.id,
                "image_url": image_url,
                "image_path": image_path,
                "description": (description or "").strip() or None,
                "week_number": week_number,
                "year": year,
                "status": SubmissionStatus.PENDING.value,
                "base_points": base_points,
                "bonus_points": bonus_points,
                "total_points": base_points + bonus_points,
                "bonus_activity_ids": [b.id for b in bonuses],
                "is_archived": False,
                "archived_at": None,
                "created_at": now,
                "updated_at": now,
            }
        )
        logger.info(f"Submission {submission_id} created for pairing {pairing.id} ({base_points + bonus_points} pts)")
        return ActionResult.ok(submission_id=submission_id, revalidate=SUBMITTER_PATHS)

    async def _claim_pending(
        self, submission_id: str, changes: dict, session: Optional[AsyncIOMotorClientSession] = None
    ) -> dict:
        """Move a PENDING submission to its reviewed state; returns the document before the change."""
        before = await self.collection.find_one_and_update(
            {"_id": submission_id, "status": SubmissionStatus.PENDING.value},
            {"$set": changes},
            return_document=ReturnDocument.BEFORE,
            session=session,
        )
        if before is None:
            if await self.collection.find_one({"_id": submission_id}, {"_id": 1}, session=session) is None:
                raise NotFoundFailure("Submission not found")
            raise ValidationFailure(ALREADY_REVIEWED)
        return before

    @admin_mutation("Failed to approve submission")
    async def approve_submission(self, actor: Identity, submission_id: str) -> ActionResult:
        now = self.clock()

        async def _approve(session: Optional[AsyncIOMotorClientSession]) -> dict:
            before = await self._claim_pending(
                submission_id,
                {
                    "status": SubmissionStatus.APPROVED.value,
                    "reviewer_id": actor.id,
                    "reviewed_at": now,
                    "updated_at": now,
                },
                session=session,
            )
            points = before.get("total_points", 0)
            try:
                await self.points.increment(before["pairing_id"], points, weekly=points, session=session)
            except Exception:
                # without a transaction the claim is already durable; hand the submission back
                if session is None:
                    await self._release_claim(submission_id, before)
                raise
            return before

        before = await self.db_manager.run_transaction(_approve)
        points = before.get("total_points", 0)

        await self.audit.record_for(
            actor,
            AuditAction.SUBMISSION_APPROVED,
            TargetType.SUBMISSION,
            submission_id,
            f"Approved submission for {points} points",
            {"pairing_id": before["pairing_id"], "points": points},
        )
        return ActionResult.ok(submission_id=submission_id, revalidate=REVIEW_PATHS)

    async def _release_claim(self, submission_id: str, before: dict) -> None:
        restored = {field: before.get(field) for field in ("status", "reviewer_id", "reviewed_at", "updated_at")}
        await self.collection.update_one(
            {"_id": submission_id, "status": SubmissionStatus.APPROVED.value}, {"$set": restored}
        )
        logger.warning(f"Approval of submission {submission_id} rolled back; it is pending again")

    @admin_mutation("Failed to reject submission")
    async def reject_submission(self, actor: Identity, submission_id: str, reason: str) -> ActionResult:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationFailure("A reason is required for rejection")

        now = self.clock()
        before = await self._claim_pending(
            submission_id,
            {
                "status": SubmissionStatus.REJECTED.value,
                "reviewer_id": actor.id,
                "review_reason": reason,
                "reviewed_at": now,
                "updated_at": now,
                "base_points": 0,
                "bonus_points": 0,
                "total_points": 0,
            },
        )
        await self.audit.record_for(
            actor,
            AuditAction.SUBMISSION_REJECTED,
            TargetType.SUBMISSION,
            submission_id,
            reason,
            {"pairing_id": before.get("pairing_id")},
        )
        return ActionResult.ok(submission_id=submission_id, revalidate=["/admin/submissions"])

    async def list_submissions(
        self, actor: Optional[Identity], status: Optional[SubmissionStatus] = None
    ) -> List[Submission]:
        require_admin(actor)
        query = {"status": SubmissionStatus(status).value} if status else {}
        docs = await self.collection.find(query).sort("created_at", -1).to_list(length=None)
        return [Submission.from_document(doc) for doc in docs]

    async def list_own_submissions(self, actor: Optional[Identity]) -> List[Submission]:
        identity = require_auth(actor)
        docs = await self.collection.find({"submitter_id": identity.id}).sort("created_at", -1).to_list(length=None)
        return [Submission.from_document(doc) for doc in docs]
