from unittest.mock import AsyncMock, MagicMock

import pytest

from ace_mentorship.services.points_service import PairingPointsStore, PointsService


@pytest.fixture
def pairings():
    repo = MagicMock()
    repo.exists = AsyncMock(return_value=True)
    return repo


@pytest.fixture
def points_store(db_manager, clock):
    return PairingPointsStore(db_manager, clock)


@pytest.fixture
def service(points_store, pairings, audit, db_manager):
    return PointsService(points_store, pairings, audit, db_manager)


def audit_docs(db_manager):
    return list(db_manager.get_collection("audit_logs").docs.values())


@pytest.mark.asyncio
async def test_adjust_points_adds_and_audits_once(service, points_store, db_manager, admin):
    await points_store.ensure("p1", "fam-1")
    await points_store.increment("p1", 40)

    result = await service.adjust_pairing_points(admin, "p1", 15, "  Great event  ")

    assert result.success is True
    assert result.previous_points == 40
    assert result.new_points == 55
    assert "/leaderboard" in result.revalidate
    assert db_manager.get_collection("pairing_points").docs["p1"]["total_points"] == 55

    entries = audit_docs(db_manager)
    assert len(entries) == 1
    entry = entries[0]
    assert entry["action"] == "POINTS_ADDED"
    assert entry["details"] == "Great event"
    assert entry["actor_email"] == "admin@example.com"
    assert entry["metadata"] == {
        "previous_points": 40,
        "adjustment": 15,
        "new_points": 55,
        "actor_name": "Ada Admin",
        "actor_email": "admin@example.com",
    }


@pytest.mark.asyncio
async def test_negative_adjustment_is_a_deduction(service, db_manager, admin):
    result = await service.adjust_pairing_points(admin, "p1", -5, "Late submission")

    assert result.success is True
    assert result.previous_points == 0
    assert result.new_points == -5
    assert audit_docs(db_manager)[0]["action"] == "POINTS_DEDUCTED"


@pytest.mark.asyncio
async def test_consecutive_adjustments_accumulate(service, admin):
    await service.adjust_pairing_points(admin, "p1", 10, "a")
    await service.adjust_pairing_points(admin, "p1", 7, "b")
    result = await service.adjust_pairing_points(admin, "p1", -2, "c")

    assert result.previous_points == 17
    assert result.new_points == 15


@pytest.mark.asyncio
async def test_zero_amount_is_rejected_without_writes(service, pairings, db_manager, admin):
    result = await service.adjust_pairing_points(admin, "p1", 0, "No-op")

    assert result.success is False
    assert result.error == "Amount must be non-zero"
    pairings.exists.assert_not_awaited()
    assert db_manager.get_collection("pairing_points").docs == {}
    assert audit_docs(db_manager) == []


@pytest.mark.asyncio
async def test_blank_reason_is_rejected(service, admin):
    result = await service.adjust_pairing_points(admin, "p1", 5, "   ")
    assert result.success is False
    assert result.error == "Reason is required for point adjustments"


@pytest.mark.asyncio
async def test_unknown_pairing_is_not_found(service, pairings, db_manager, admin):
    pairings.exists.return_value = False

    result = await service.adjust_pairing_points(admin, "missing", 5, "Bonus")

    assert result.success is False
    assert result.error == "Pairing not found"
    assert db_manager.get_collection("pairing_points").docs == {}


@pytest.mark.asyncio
async def test_non_admin_and_anonymous_callers_are_refused(service, pairings, mentor):
    forbidden = await service.adjust_pairing_points(mentor, "p1", 5, "Bonus")
    anonymous = await service.adjust_pairing_points(None, "p1", 5, "Bonus")

    assert forbidden.error == "Admin access required"
    assert anonymous.error == "Authentication required"
    pairings.exists.assert_not_awaited()


@pytest.mark.asyncio
async def test_store_failure_returns_generic_message(pairings, audit, db_manager, admin):
    broken_store = MagicMock()
    broken_store.increment = AsyncMock(side_effect=RuntimeError("connection reset"))
    service = PointsService(broken_store, pairings, audit, db_manager)

    result = await service.adjust_pairing_points(admin, "p1", 5, "Bonus")

    assert result.success is False
    assert result.error == "Failed to adjust points"


@pytest.mark.asyncio
async def test_audit_failure_does_not_fail_adjustment(service, db_manager, admin):
    audit_collection = db_manager.get_collection("audit_logs")
    audit_collection.insert_one = AsyncMock(side_effect=RuntimeError("audit store down"))

    result = await service.adjust_pairing_points(admin, "p1", 5, "Bonus")

    assert result.success is True
    assert result.new_points == 5
    audit_collection.insert_one.assert_awaited_once()


@pytest.mark.asyncio
async def test_reset_weekly_points(points_store, db_manager):
    await points_store.increment("p1", 10, weekly=10)
    await points_store.increment("p2", 4, weekly=4)

    assert await points_store.reset_weekly() == 2
    docs = db_manager.get_collection("pairing_points").docs
    assert docs["p1"]["weekly_points"] == 0
    assert docs["p1"]["total_points"] == 10


@pytest.mark.asyncio
async def test_ensure_keeps_existing_totals(points_store, db_manager):
    await points_store.increment("p1", 12)
    await points_store.ensure("p1", "fam-2")

    doc = db_manager.get_collection("pairing_points").docs["p1"]
    assert doc["total_points"] == 12
    assert doc["family_id"] == "fam-2"


@pytest.mark.asyncio
async def test_points_history_lists_pairing_entries(service, admin):
    await service.adjust_pairing_points(admin, "p1", 5, "first")
    await service.adjust_pairing_points(admin, "p2", 3, "other")

    history = await service.get_points_history(admin, pairing_id="p1")

    assert [entry.details for entry in history] == ["first"]


@pytest.mark.asyncio
async def test_pairing_standings_sorted_by_total(db_manager, audit, clock, pairing_repo, people, admin):
    points_store = PairingPointsStore(db_manager, clock)
    service = PointsService(points_store, pairing_repo, audit, db_manager)
    await db_manager.get_collection("families").insert_one({"_id": "fam-1", "name": "Ohana"})
    low = await pairing_repo.create("mentor-1", ["mentee-1"], family_id="fam-1")
    high = await pairing_repo.create("mentor-2", ["mentee-2", "mentee-3"])
    await points_store.increment(low.id, 5)
    await points_store.increment(high.id, 20, weekly=8)

    standings = await service.list_pairing_standings(admin)

    assert [s.id for s in standings] == [high.id, low.id]
    assert standings[0].mentor_name == "Max Mentor"
    assert standings[0].mentee_names == ["Milo Mentee", "Mae Mentee"]
    assert standings[0].weekly_points == 8
    assert standings[0].family_name is None
    assert standings[1].family_name == "Ohana"
