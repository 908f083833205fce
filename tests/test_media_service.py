from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from ace_mentorship.models.media import MediaFilter
from ace_mentorship.services.media_service import MediaService


@pytest.fixture
def blob_store():
    store = MagicMock()
    store.delete = AsyncMock(return_value=True)
    return store


@pytest.fixture
def users(mentee):
    repo = MagicMock()
    repo.get_many = AsyncMock(return_value=[mentee])
    return repo


@pytest.fixture
def service(db_manager, blob_store, users, audit, settings, clock):
    return MediaService(db_manager, blob_store, users, audit, settings, clock)


@pytest.fixture
def submissions(db_manager):
    return db_manager.get_collection("submissions")


async def seed(submissions, clock, submission_id="s1", **fields):
    doc = {
        "_id": submission_id,
        "submitter_id": "mentee-1",
        "pairing_id": "p1",
        "image_url": f"https://cdn.example.com/{submission_id}.jpg",
        "image_path": f"submissions/mentee-1/{submission_id}.jpg",
        "status": "APPROVED",
        "week_number": 3,
        "year": 2026,
        "total_points": 10,
        "is_archived": False,
        "archived_at": None,
        "created_at": clock.now - timedelta(days=40),
    }
    doc.update(fields)
    await submissions.insert_one(doc)


@pytest.mark.asyncio
async def test_archive_then_restore(service, submissions, clock, admin, db_manager):
    await seed(submissions, clock)

    archived = await service.archive_media(admin, "s1", "Duplicate photo")
    assert archived.success is True
    assert submissions.docs["s1"]["is_archived"] is True
    assert submissions.docs["s1"]["archived_at"] == clock.now

    restored = await service.restore_media(admin, "s1")
    assert restored.success is True
    assert submissions.docs["s1"]["is_archived"] is False
    assert submissions.docs["s1"]["archived_at"] is None

    actions = [doc["action"] for doc in db_manager.get_collection("audit_logs").docs.values()]
    assert actions == ["MEDIA_ARCHIVED", "MEDIA_RESTORED"]


@pytest.mark.asyncio
async def test_delete_refused_before_retention_with_remaining_days(service, submissions, clock, admin, blob_store):
    await seed(submissions, clock, is_archived=True, archived_at=clock.now - timedelta(days=18, hours=3))

    result = await service.delete_archived_media(admin, "s1")

    assert result.success is False
    assert "12 days remaining" in result.error
    assert "s1" in submissions.docs
    blob_store.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_allowed_at_exactly_thirty_days(service, submissions, clock, admin, blob_store, db_manager):
    await seed(submissions, clock, is_archived=True, archived_at=clock.now - timedelta(days=30))

    result = await service.delete_archived_media(admin, "s1")

    assert result.success is True
    assert "s1" not in submissions.docs
    blob_store.delete.assert_awaited_once_with("submissions/mentee-1/s1.jpg")
    entry = next(iter(db_manager.get_collection("audit_logs").docs.values()))
    assert entry["action"] == "MEDIA_DELETED"
    assert entry["metadata"]["deleted_image_path"] == "submissions/mentee-1/s1.jpg"


@pytest.mark.asyncio
async def test_delete_continues_when_blob_removal_fails(service, submissions, clock, admin, blob_store):
    blob_store.delete.return_value = False
    await seed(submissions, clock, is_archived=True, archived_at=clock.now - timedelta(days=31))

    result = await service.delete_archived_media(admin, "s1")

    assert result.success is True
    assert "s1" not in submissions.docs


@pytest.mark.asyncio
async def test_delete_refused_for_active_media(service, submissions, clock, admin):
    await seed(submissions, clock)

    result = await service.delete_archived_media(admin, "s1")

    assert result.success is False
    assert result.error == "Only archived media can be permanently deleted"


@pytest.mark.asyncio
async def test_delete_refused_when_archive_date_missing(service, submissions, clock, admin):
    await seed(submissions, clock, is_archived=True, archived_at=None)

    result = await service.delete_archived_media(admin, "s1")

    assert result.success is False
    assert "no archive date" in result.error


@pytest.mark.asyncio
async def test_missing_submission_is_not_found(service, admin):
    for operation in (service.archive_media, service.restore_media, service.delete_archived_media):
        result = await operation(admin, "nope")
        assert result.error == "Submission not found"


@pytest.mark.asyncio
async def test_mentor_cannot_archive(service, submissions, clock, mentor):
    await seed(submissions, clock)

    result = await service.archive_media(mentor, "s1")

    assert result.error == "Admin access required"
    assert submissions.docs["s1"]["is_archived"] is False


@pytest.mark.asyncio
async def test_media_library_countdown_uses_retention_policy(service, submissions, clock, admin):
    await seed(submissions, clock, "active")
    await seed(submissions, clock, "recent", is_archived=True, archived_at=clock.now - timedelta(days=10))
    await seed(submissions, clock, "old", is_archived=True, archived_at=clock.now - timedelta(days=35))

    items = {item.id: item for item in await service.get_media_library(admin)}
    archived = await service.get_media_library(admin, MediaFilter.ARCHIVED)
    active = await service.get_media_library(admin, MediaFilter.ACTIVE)

    assert items["recent"].days_until_deletable == 20
    assert items["recent"].eligible_for_deletion is False
    assert items["old"].eligible_for_deletion is True
    assert items["old"].days_until_deletable == 0
    assert items["active"].days_until_deletable is None
    assert items["active"].days_since_created == 40
    assert items["active"].submitter_name == "Mia Mentee"
    assert {item.id for item in archived} == {"recent", "old"}
    assert [item.id for item in active] == ["active"]


@pytest.mark.asyncio
async def test_media_stats(service, submissions, clock, admin):
    await seed(submissions, clock, "a")
    await seed(submissions, clock, "b", is_archived=True, archived_at=clock.now - timedelta(days=3))
    await seed(submissions, clock, "c", is_archived=True, archived_at=clock.now - timedelta(days=30))

    stats = await service.get_media_stats(admin)

    assert (stats.total, stats.active, stats.archived, stats.eligible_for_deletion) == (3, 1, 2, 1)
