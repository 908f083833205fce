"""
# Media Service

Archive, restore and permanently delete submission media, plus the admin media library.

## Lifecycle

```
active ──archive──▶ archived ──(retention elapsed)──▶ permanently deleted
   ▲                   │
   └─────restore───────┘
```

- `archive_media` sets `is_archived=True` and stamps `archived_at`.
- `restore_media` clears both.
- `delete_archived_media` is refused unless the item is archived **and** the retention period
  (`MEDIA_RETENTION_DAYS`, 30 by default) has elapsed since `archived_at`; the refusal names the
  exact number of days remaining. On success the blob is removed first (best effort), then the
  record, then a `MEDIA_DELETED` audit entry carrying the deleted path.

The library countdown and the delete gate share `services.retention`.
"""

from datetime import datetime
from typing import Callable, List, Optional

from ace_mentorship.config import Settings
from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.database.repositories import UserRepository
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.audit import AuditAction, TargetType
from ace_mentorship.models.identity import Identity
from ace_mentorship.models.media import MediaFilter, MediaItem, MediaStats
from ace_mentorship.models.results import ActionResult
from ace_mentorship.services import retention
from ace_mentorship.services.audit_service import AuditTrail
from ace_mentorship.services.authorization import require_admin
from ace_mentorship.services.blob_storage import BlobStore
from ace_mentorship.services.mutation_pipeline import NotFoundFailure, ValidationFailure, admin_mutation
from ace_mentorship.utils.week import utc_now

logger = get_logger(prefix="[MediaService]")

MEDIA_PATHS = ["/admin/media"]


class MediaService:
    def __init__(
        self,
        db_manager: DatabaseManager,
        blob_store: BlobStore,
        users: UserRepository,
        audit: AuditTrail,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db_manager = db_manager
        self.blob_store = blob_store
        self.users = users
        self.audit = audit
        self.retention_days = settings.MEDIA_RETENTION_DAYS
        self.clock = clock
        self.collection_name = "submissions"

    @property
    def collection(self):
        return self.db_manager.get_collection(self.collection_name)

    async def _get_submission(self, submission_id: str) -> dict:
        doc = await self.collection.find_one({"_id": submission_id})
        if doc is None:
            raise NotFoundFailure("Submission not found")
        return doc

    @admin_mutation("Failed to archive media")
    async def archive_media(self, actor: Identity, submission_id: str, reason: Optional[str] = None) -> ActionResult:
        await self._get_submission(submission_id)
        now = self.clock()
        await self.collection.update_one(
            {"_id": submission_id},
            {"$set": {"is_archived": True, "archived_at": now, "updated_at": now}},
        )
        await self.audit.record_for(
            actor,
            AuditAction.MEDIA_ARCHIVED,
            TargetType.SUBMISSION,
            submission_id,
            (reason or "").strip() or "Media archived by admin",
            {"actor_name": actor.name},
        )
        return ActionResult.ok(revalidate=MEDIA_PATHS)

    @admin_mutation("Failed to restore media")
    async def restore_media(self, actor: Identity, submission_id: str) -> ActionResult:
        await self._get_submission(submission_id)
        await self.collection.update_one(
            {"_id": submission_id},
            {"$set": {"is_archived": False, "archived_at": None, "updated_at": self.clock()}},
        )
        await self.audit.record_for(
            actor,
            AuditAction.MEDIA_RESTORED,
            TargetType.SUBMISSION,
            submission_id,
            "Media restored from archive",
            {"actor_name": actor.name},
        )
        return ActionResult.ok(revalidate=MEDIA_PATHS)

    @admin_mutation("Failed to delete media")
    async def delete_archived_media(self, actor: Identity, submission_id: str) -> ActionResult:
        doc = await self._get_submission(submission_id)
        if not doc.get("is_archived"):
            raise ValidationFailure("Only archived media can be permanently deleted")

        archived_at = doc.get("archived_at")
        if archived_at is None:
            raise ValidationFailure("Archived media has no archive date; restore and archive it again")

        now = self.clock()
        if not retention.eligible_for_deletion(archived_at, now, self.retention_days):
            remaining = retention.days_until_deletable(archived_at, now, self.retention_days)
            raise ValidationFailure(
                f"Media must be archived for {self.retention_days} days before deletion. "
                f"{remaining} days remaining."
            )

        image_path = doc.get("image_path")
        if image_path and not await self.blob_store.delete(image_path):
            logger.error("Blob %s for submission %s was not deleted; removing record anyway", image_path, submission_id)

        await self.collection.delete_one({"_id": submission_id})
        await self.audit.record_for(
            actor,
            AuditAction.MEDIA_DELETED,
            TargetType.SUBMISSION,
            submission_id,
            "Media permanently deleted after retention period",
            {"actor_name": actor.name, "deleted_image_path": image_path},
        )
        return ActionResult.ok(revalidate=MEDIA_PATHS)

    def _to_item(self, doc: dict, submitter_name: str, now: datetime) -> MediaItem:
        created_at = doc.get("created_at")
        archived_at = doc.get("archived_at")
        return MediaItem(
            id=doc["_id"],
            submitter_id=doc.get("submitter_id", ""),
            submitter_name=submitter_name,
            pairing_id=doc.get("pairing_id"),
            image_url=doc.get("image_url", ""),
            image_path=doc.get("image_path"),
            status=doc.get("status", "PENDING"),
            week_number=doc.get("week_number", 0),
            year=doc.get("year", 0),
            total_points=doc.get("total_points", 0),
            is_archived=bool(doc.get("is_archived")),
            archived_at=archived_at,
            created_at=created_at,
            days_since_created=retention.days_since(created_at, now) if created_at else 0,
            days_since_archived=retention.days_since(archived_at, now) if archived_at else None,
            days_until_deletable=retention.days_until_deletable(archived_at, now, self.retention_days),
            eligible_for_deletion=retention.eligible_for_deletion(archived_at, now, self.retention_days),
        )

    async def get_media_library(
        self, actor: Optional[Identity], media_filter: MediaFilter = MediaFilter.ALL
    ) -> List[MediaItem]:
        require_admin(actor)
        query: dict = {}
        if media_filter == MediaFilter.ACTIVE:
            query["is_archived"] = {"$ne": True}
        elif media_filter == MediaFilter.ARCHIVED:
            query["is_archived"] = True

        docs = await self.collection.find(query).sort("created_at", -1).to_list(length=None)
        submitters = await self.users.get_many(doc.get("submitter_id", "") for doc in docs)
        names = {identity.id: identity.name for identity in submitters}
        now = self.clock()
        return [self._to_item(doc, names.get(doc.get("submitter_id"), "Unknown"), now) for doc in docs]

    async def get_media_stats(self, actor: Optional[Identity]) -> MediaStats:
        require_admin(actor)
        now = self.clock()
        stats = MediaStats()
        async for doc in self.collection.find({}, {"is_archived": 1, "archived_at": 1}):
            stats.total += 1
            if doc.get("is_archived"):
                stats.archived += 1
                if retention.eligible_for_deletion(doc.get("archived_at"), now, self.retention_days):
                    stats.eligible_for_deletion += 1
            else:
                stats.active += 1
        return stats
