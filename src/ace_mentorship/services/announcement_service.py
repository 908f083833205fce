"""
# Announcement Service

Announcements live in the `announcements` collection.

## Publication Date

- Publishing with an explicit `published_at` stores that date.
- Publishing without one stamps `published_at=now` only when the announcement has never been
  published; re-publishing keeps the original date.
- Unpublishing always clears `published_at`.

The public list (`published_only=True`) hides unpublished items and items scheduled in the future.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union
from uuid import uuid4

from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.announcement import Announcement, AnnouncementUpdate
from ace_mentorship.models.audit import AuditAction, TargetType
from ace_mentorship.models.identity import Identity
from ace_mentorship.models.results import ActionResult
from ace_mentorship.services.audit_service import AuditTrail
from ace_mentorship.services.mutation_pipeline import NotFoundFailure, ValidationFailure, admin_mutation, parse_update
from ace_mentorship.utils.week import utc_now

logger = get_logger(prefix="[AnnouncementService]")

ANNOUNCEMENT_PATHS = ["/admin/announcements", "/announcements", "/"]
UPDATABLE_FIELDS = {"title", "content", "is_pinned"}


def resolve_published_at(
    is_published: Optional[bool],
    explicit: Optional[datetime],
    current: Optional[datetime],
    now: datetime,
) -> Optional[datetime]:
    """
    New `published_at` for a publish-state change.

    `is_published=None` means the state is not being changed, so the current value is kept.
    """
    if is_published is None:
        return current
    if not is_published:
        return None
    if explicit is not None:
        return explicit
    return current or now


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


class AnnouncementService:
    def __init__(self, db_manager: DatabaseManager, audit: AuditTrail, clock: Callable[[], datetime] = utc_now):
        self.db_manager = db_manager
        self.audit = audit
        self.clock = clock
        self.collection_name = "announcements"

    @property
    def collection(self):
        return self.db_manager.get_collection(self.collection_name)

    @admin_mutation("Failed to create announcement")
    async def create_announcement(
        self,
        actor: Identity,
        title: str,
        content: str,
        is_published: bool = False,
        is_pinned: bool = False,
        published_at: Optional[datetime] = None,
    ) -> ActionResult:
        title = (title or "").strip()
        content = (content or "").strip()
        if not title:
            raise ValidationFailure("Title is required")
        if not content:
            raise ValidationFailure("Content is required")

        now = self.clock()
        announcement_id = uuid4().hex
        await self.collection.insert_one(
            {
                "_id": announcement_id,
                "title": title,
                "content": content,
                "author_id": actor.id,
                "author_name": actor.name,
                "is_published": bool(is_published),
                "is_pinned": bool(is_pinned),
                "published_at": resolve_published_at(bool(is_published), published_at, None, now),
                "created_at": now,
                "updated_at": now,
            }
        )
        await self.audit.record_for(
            actor, AuditAction.ANNOUNCEMENT_CREATED, TargetType.ANNOUNCEMENT, announcement_id, f"Created announcement: {title}"
        )
        return ActionResult.ok(id=announcement_id, revalidate=ANNOUNCEMENT_PATHS)

    @admin_mutation("Failed to update announcement")
    async def update_announcement(
        self, actor: Identity, announcement_id: str, updates: Union[AnnouncementUpdate, Dict[str, Any]]
    ) -> ActionResult:
        current = await self.collection.find_one({"_id": announcement_id})
        if current is None:
            raise NotFoundFailure("Announcement not found")

        fields = parse_update(AnnouncementUpdate, updates)
        changes = {key: value for key, value in fields.items() if key in UPDATABLE_FIELDS}
        for key in ("title", "content"):
            if key in changes:
                changes[key] = (changes[key] or "").strip()
                if not changes[key]:
                    raise ValidationFailure(f"{key.capitalize()} is required")

        if fields.get("is_published") is not None:
            is_published = fields["is_published"]
            changes["is_published"] = is_published
            changes["published_at"] = resolve_published_at(
                is_published, fields.get("published_at"), current.get("published_at"), self.clock()
            )
        elif fields.get("published_at") is not None and current.get("is_published"):
            changes["published_at"] = fields["published_at"]

        if not changes:
            raise ValidationFailure("No valid fields to update")

        await self.collection.update_one({"_id": announcement_id}, {"$set": {**changes, "updated_at": self.clock()}})
        await self.audit.record_for(
            actor,
            AuditAction.ANNOUNCEMENT_UPDATED,
            TargetType.ANNOUNCEMENT,
            announcement_id,
            "Announcement updated",
            {"fields": sorted(changes)},
        )
        return ActionResult.ok(revalidate=ANNOUNCEMENT_PATHS)

    @admin_mutation("Failed to delete announcement")
    async def delete_announcement(self, actor: Identity, announcement_id: str) -> ActionResult:
        current = await self.collection.find_one({"_id": announcement_id}, {"title": 1})
        if current is None:
            raise NotFoundFailure("Announcement not found")

        await self.collection.delete_one({"_id": announcement_id})
        await self.audit.record_for(
            actor,
            AuditAction.ANNOUNCEMENT_DELETED,
            TargetType.ANNOUNCEMENT,
            announcement_id,
            f"Deleted announcement: {current.get('title', '')}",
        )
        return ActionResult.ok(revalidate=ANNOUNCEMENT_PATHS)

    async def list_announcements(self, published_only: bool = False) -> List[Announcement]:
        query = {"is_published": True} if published_only else {}
        docs = await self.collection.find(query).sort("created_at", -1).to_list(length=None)
        announcements = [Announcement.from_document(doc) for doc in docs]
        if published_only:
            now = self.clock()
            announcements = [a for a in announcements if a.published_at and _aware(a.published_at) <= now]
        return announcements
