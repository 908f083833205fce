from unittest.mock import AsyncMock

import pytest

from ace_mentorship.database import repositories
from ace_mentorship.services.pairing_service import PairingService
from ace_mentorship.services.points_service import PairingPointsStore
from ace_mentorship.services.user_mirror import UserMirror


@pytest.fixture
def points_store(db_manager, clock):
    return PairingPointsStore(db_manager, clock)


@pytest.fixture
def mirror(db_manager, clock):
    return UserMirror(db_manager, clock)


@pytest.fixture
def service(pairing_repo, users, mirror, points_store, audit, db_manager, settings):
    return PairingService(pairing_repo, users, mirror, points_store, audit, db_manager, settings)


@pytest.mark.asyncio
async def test_create_pairing_writes_both_stores(service, pairing_repo, users, db_manager, people, admin):
    await db_manager.get_collection("families").insert_one({"_id": "fam-1", "name": "Ohana"})

    result = await service.create_pairing(admin, "fam-1", "mentor-1", ["mentee-1", "mentee-2"])

    assert result.success is True
    pairing = await pairing_repo.get(result.pairing_id)
    assert pairing.mentor_id == "mentor-1"
    assert pairing.mentee_ids == ["mentee-1", "mentee-2"]
    assert (await users.get_by_id("mentee-2")).family_id == "fam-1"
    points_doc = db_manager.get_collection("pairing_points").docs[result.pairing_id]
    assert points_doc["total_points"] == 0
    assert points_doc["family_id"] == "fam-1"
    actions = [doc["action"] for doc in db_manager.get_collection("audit_logs").docs.values()]
    assert actions == ["PAIRING_CREATED"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "mentor_id,mentee_ids,error",
    [
        ("", ["mentee-1"], "Mentor is required"),
        ("mentor-1", [], "At least one mentee is required"),
        ("mentor-1", ["mentee-1", "mentee-2", "mentee-3"], "A pairing can have at most 2 mentees"),
        ("mentor-1", ["mentor-1"], "Mentor cannot also be a mentee"),
        ("mentor-1", ["ghost"], "User not found: ghost"),
    ],
)
async def test_create_pairing_validation(service, pairing_repo, people, admin, mentor_id, mentee_ids, error):
    result = await service.create_pairing(admin, None, mentor_id, mentee_ids)

    assert result.success is False
    assert result.error == error
    assert await pairing_repo.list_all() == []


@pytest.mark.asyncio
async def test_create_pairing_unknown_family(service, people, admin):
    result = await service.create_pairing(admin, "fam-missing", "mentor-1", ["mentee-1"])
    assert result.error == "Family not found"


@pytest.mark.asyncio
async def test_member_family_failure_rolls_back_pairing(
    service, pairing_repo, users, db_manager, people, admin, monkeypatch
):
    await db_manager.get_collection("families").insert_one({"_id": "fam-1", "name": "Ohana"})
    monkeypatch.setattr(repositories, "_assign_family", AsyncMock(side_effect=RuntimeError("lock timeout")))

    result = await service.create_pairing(admin, "fam-1", "mentor-1", ["mentee-1"])

    assert result.error == "Failed to create pairing"
    assert await pairing_repo.list_all() == []
    assert (await users.get_by_id("mentee-1")).family_id is None
    assert db_manager.get_collection("pairing_points").docs == {}
    assert db_manager.get_collection("audit_logs").docs == {}


@pytest.mark.asyncio
async def test_points_sync_failure_is_logged_not_fatal(service, points_store, pairing_repo, people, admin):
    points_store.ensure = AsyncMock(side_effect=RuntimeError("document store down"))

    result = await service.create_pairing(admin, None, "mentor-1", ["mentee-1"])

    assert result.success is True
    assert await pairing_repo.exists(result.pairing_id)


@pytest.mark.asyncio
async def test_update_pairing_clears_family_for_removed_members(service, users, db_manager, people, admin):
    await db_manager.get_collection("families").insert_one({"_id": "fam-1", "name": "Ohana"})
    created = await service.create_pairing(admin, "fam-1", "mentor-1", ["mentee-1", "mentee-2"])

    result = await service.update_pairing(admin, created.pairing_id, mentee_ids=["mentee-2", "mentee-3"])

    assert result.success is True
    assert (await users.get_by_id("mentee-1")).family_id is None
    assert (await users.get_by_id("mentee-3")).family_id == "fam-1"


@pytest.mark.asyncio
async def test_update_missing_pairing(service, people, admin):
    result = await service.update_pairing(admin, "nope", mentor_id="mentor-2")
    assert result.error == "Pairing not found"


@pytest.mark.asyncio
async def test_add_and_remove_mentee(service, pairing_repo, people, admin):
    created = await service.create_pairing(admin, None, "mentor-1", ["mentee-1"])
    pairing_id = created.pairing_id

    assert (await service.add_mentee(admin, pairing_id, "mentee-2")).success is True
    assert (await service.add_mentee(admin, pairing_id, "mentee-2")).error == "Mentee already in pairing"
    assert (await service.add_mentee(admin, pairing_id, "mentee-3")).error == "A pairing can have at most 2 mentees"
    assert (await service.add_mentee(admin, pairing_id, "mentor-1")).error == "Mentor cannot also be a mentee"

    assert (await service.remove_mentee(admin, pairing_id, "mentee-1")).success is True
    assert (await service.remove_mentee(admin, pairing_id, "mentee-1")).error == "Mentee not in pairing"
    assert (await pairing_repo.get(pairing_id)).mentee_ids == ["mentee-2"]


@pytest.mark.asyncio
async def test_delete_pairing_removes_points(service, pairing_repo, db_manager, people, admin):
    created = await service.create_pairing(admin, None, "mentor-1", ["mentee-1"])

    result = await service.delete_pairing(admin, created.pairing_id)

    assert result.success is True
    assert not await pairing_repo.exists(created.pairing_id)
    assert created.pairing_id not in db_manager.get_collection("pairing_points").docs
    assert (await service.delete_pairing(admin, created.pairing_id)).error == "Pairing not found"


@pytest.mark.asyncio
async def test_get_pairing_includes_family_and_submissions(service, db_manager, clock, people, admin):
    await db_manager.get_collection("families").insert_one({"_id": "fam-1", "name": "Ohana"})
    created = await service.create_pairing(admin, "fam-1", "mentor-1", ["mentee-1"])
    await db_manager.get_collection("submissions").insert_one(
        {"_id": "s1", "pairing_id": created.pairing_id, "status": "PENDING", "created_at": clock.now}
    )

    detail = await service.get_pairing(admin, created.pairing_id)

    assert detail["family"] == {"id": "fam-1", "name": "Ohana"}
    assert detail["mentor"]["name"] == "Mo Mentor"
    assert [m["name"] for m in detail["mentees"]] == ["Mia Mentee"]
    assert detail["submissions"][0]["id"] == "s1"
    assert detail["total_points"] == 0
    assert await service.get_pairing(admin, "nope") is None


@pytest.mark.asyncio
async def test_pairing_mutations_require_admin(service, pairing_repo, people, mentor):
    result = await service.create_pairing(mentor, None, "mentor-1", ["mentee-1"])

    assert result.error == "Admin access required"
    assert await pairing_repo.list_all() == []
