from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from ace_mentorship.models.audit import AuditQuery
from ace_mentorship.services.audit_service import AuditTrail
from ace_mentorship.services.authorization import ForbiddenError, UnauthenticatedError
from ace_mentorship.services.family_service import FamilyService
from ace_mentorship.services.leaderboard_service import LeaderboardService
from ace_mentorship.services.points_service import PairingPointsStore, PointsService


@pytest.fixture
def points_store(db_manager, clock):
    return PairingPointsStore(db_manager, clock)


@pytest.fixture
def service(db_manager, users, pairing_repo, points_store, audit, settings, clock):
    families = FamilyService(db_manager, pairing_repo, users, points_store, audit, clock)
    points = PointsService(points_store, pairing_repo, audit, db_manager)
    return LeaderboardService(db_manager, users, pairing_repo, families, points, settings, clock)


@pytest_asyncio.fixture
async def league(db_manager, pairing_repo, points_store, people):
    families = db_manager.get_collection("families")
    await families.insert_one({"_id": "fam-1", "name": "Ohana", "is_archived": False, "family_head_ids": ["mentor-1"]})
    await families.insert_one({"_id": "fam-2", "name": "Koa", "is_archived": False})
    await families.insert_one({"_id": "fam-3", "name": "Retired", "is_archived": True})
    first = await pairing_repo.create("mentor-1", ["mentee-1"], family_id="fam-1")
    second = await pairing_repo.create("mentor-2", ["mentee-2", "mentee-3"], family_id="fam-2")
    await points_store.increment(first.id, 30, weekly=5)
    await points_store.increment(second.id, 50, weekly=20)
    return first, second


@pytest.mark.asyncio
async def test_family_leaderboard_ranks_active_families(service, league):
    standings = await service.family_leaderboard()

    assert [s.name for s in standings] == ["Koa", "Ohana"]
    assert standings[0].total_points == 50
    assert standings[0].member_count == 3
    assert standings[1].weekly_points == 5


@pytest.mark.asyncio
async def test_pairing_leaderboard_includes_names(service, league):
    standings = await service.pairing_leaderboard()

    assert [s.mentor_name for s in standings] == ["Max Mentor", "Mo Mentor"]
    assert standings[0].family_name == "Koa"
    assert sorted(standings[0].mentee_names) == ["Mae Mentee", "Milo Mentee"]


@pytest.mark.asyncio
async def test_admin_stats_counts_current_week(service, db_manager, league, admin):
    first, _ = league
    submissions = db_manager.get_collection("submissions")
    await submissions.insert_one({"_id": "s1", "pairing_id": first.id, "status": "APPROVED", "week_number": 10,
                                  "year": 2026, "total_points": 15})
    await submissions.insert_one({"_id": "s2", "pairing_id": first.id, "status": "APPROVED", "week_number": 9,
                                  "year": 2026, "total_points": 10})
    await submissions.insert_one({"_id": "s3", "pairing_id": first.id, "status": "PENDING", "week_number": 10,
                                  "year": 2026, "total_points": 10})
    await db_manager.get_collection("bonus_activities").insert_one({"_id": "b1", "name": "Hike", "is_active": True})
    await db_manager.get_collection("bonus_activities").insert_one({"_id": "b2", "name": "Old", "is_active": False})

    stats = await service.admin_stats(admin)

    assert (stats.week_number, stats.year) == (10, 2026)
    assert stats.total_users == 6
    assert stats.total_families == 3
    assert stats.total_pairings == 2
    assert stats.pending_submissions == 1
    assert stats.active_bonuses == 1
    assert stats.points_this_week == 15
    assert stats.approved_this_week == 1


@pytest.mark.asyncio
async def test_admin_stats_requires_admin(service, mentor):
    with pytest.raises(ForbiddenError):
        await service.admin_stats(mentor)
    with pytest.raises(UnauthenticatedError):
        await service.admin_stats(None)


@pytest.mark.asyncio
async def test_user_stats_counts_distinct_weeks(service, db_manager, mentee):
    submissions = db_manager.get_collection("submissions")
    for submission_id, week, points in [("a", 3, 10), ("b", 3, 15), ("c", 4, 0)]:
        await submissions.insert_one({"_id": submission_id, "submitter_id": "mentee-1", "week_number": week,
                                      "year": 2026, "total_points": points})
    await submissions.insert_one({"_id": "other", "submitter_id": "mentee-2", "week_number": 3, "year": 2026,
                                  "total_points": 99})

    stats = await service.user_stats(mentee)

    assert (stats.total_submissions, stats.total_points, stats.submitted_weeks) == (3, 25, 2)


# --- Audit trail queries ---


@pytest.mark.asyncio
async def test_audit_entries_newest_first_with_filters(audit, clock, admin):
    await audit.record_for(admin, "FAMILY_CREATED", "family", "fam-1", "Created")
    clock.advance(minutes=1)
    await audit.record_for(admin, "PAIRING_CREATED", "pairing", "p1", "Created")
    clock.advance(minutes=1)
    await audit.record("admin-2", "POINTS_ADDED", "pairing", "p1", "Bonus", {"adjustment": 5})

    everything = await audit.list_entries()
    by_actor = await audit.list_entries(AuditQuery(actor_id="admin-1"))
    history = await audit.history_for("pairing", "p1")

    assert [e.action for e in everything] == ["POINTS_ADDED", "PAIRING_CREATED", "FAMILY_CREATED"]
    assert everything[0].actor_email == "Unknown"
    assert everything[0].metadata == {"adjustment": 5}
    assert {e.target_id for e in by_actor} == {"fam-1", "p1"}
    assert [e.action for e in history] == ["POINTS_ADDED", "PAIRING_CREATED"]


@pytest.mark.asyncio
async def test_audit_failure_surfaces_when_not_silent(db_manager, settings, clock, admin):
    strict = AuditTrail(db_manager, settings.model_copy(update={"AUDIT_FAIL_SILENTLY": False}), clock)
    db_manager.get_collection("audit_logs").insert_one = AsyncMock(side_effect=RuntimeError("down"))

    with pytest.raises(RuntimeError):
        await strict.record_for(admin, "FAMILY_CREATED", "family", "fam-1", "Created")
