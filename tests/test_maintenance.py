from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from ace_mentorship.cli.admin_cli import AdminCLI, build_parser, main
from ace_mentorship.database.indexes import DOCUMENT_INDEXES, create_document_indexes, verify_document_indexes
from ace_mentorship.migrations.family_heads_migration import FamilyHeadsMigration, merge_heads
from ace_mentorship.models.identity import Role
from ace_mentorship.services.points_service import PairingPointsStore
from ace_mentorship.services.user_mirror import UserMirror


# --- Family heads migration ---


def test_merge_heads_puts_legacy_head_first_without_duplicates():
    assert merge_heads("h1", ["h2", "h1"]) == ["h1", "h2"]
    assert merge_heads(None, ["h2"]) == ["h2"]
    assert merge_heads("h1", None) == ["h1"]


@pytest.mark.asyncio
async def test_migration_normalizes_legacy_documents(db_manager, clock):
    families = db_manager.get_collection("families")
    await families.insert_one({"_id": "fam-1", "name": "Old", "family_head_id": "h1"})
    await families.insert_one({"_id": "fam-2", "name": "Mixed", "family_head_id": "h1", "family_head_ids": ["h2"]})
    await families.insert_one({"_id": "fam-3", "name": "Current", "family_head_ids": ["h3"]})

    results = await FamilyHeadsMigration(db_manager, clock).run()

    assert results["status"] == "success"
    assert results["documents_updated"] == 2
    assert families.docs["fam-1"]["family_head_ids"] == ["h1"]
    assert families.docs["fam-2"]["family_head_ids"] == ["h1", "h2"]
    assert all("family_head_id" not in doc for doc in families.docs.values())
    assert "updated_at" not in families.docs["fam-3"]
    history = list(db_manager.get_collection("migrations").docs.values())
    assert history[0]["migration_id"] == "family_heads_list_v1"

    rerun = await FamilyHeadsMigration(db_manager, clock).run()
    assert rerun["documents_updated"] == 0


@pytest.mark.asyncio
async def test_migration_collects_per_document_errors(db_manager, clock):
    families = db_manager.get_collection("families")
    await families.insert_one({"_id": "fam-1", "family_head_id": "h1"})
    families.update_one = AsyncMock(side_effect=RuntimeError("write conflict"))

    results = await FamilyHeadsMigration(db_manager, clock).run()

    assert results["status"] == "partial"
    assert results["errors"] == ["Error migrating family fam-1: write conflict"]


# --- Indexes ---


@pytest.mark.asyncio
async def test_index_catalog_is_idempotent(db_manager):
    assert await create_document_indexes(db_manager) == len(DOCUMENT_INDEXES)
    assert await create_document_indexes(db_manager) == len(DOCUMENT_INDEXES)
    assert await verify_document_indexes(db_manager) == {}
    assert db_manager.get_collection("users").indexes["users_email_idx"]["unique"] is True


@pytest.mark.asyncio
async def test_verify_reports_missing_indexes(db_manager):
    missing = await verify_document_indexes(db_manager)

    assert "audit_timestamp_idx" in missing["audit_logs"]
    assert missing["users"] == ["users_email_idx"]


@pytest.mark.asyncio
async def test_single_index_failure_is_skipped(db_manager):
    db_manager.get_collection("families").create_index = AsyncMock(side_effect=RuntimeError("options conflict"))

    assert await create_document_indexes(db_manager) == len(DOCUMENT_INDEXES) - 1


# --- Relational repositories ---


@pytest.mark.asyncio
async def test_user_lookups_normalize_email(users, relational):
    created = await users.create("  Sam@Example.COM ", "Sam", Role.MENTOR)

    assert created.email == "sam@example.com"
    assert (await users.get_by_email("SAM@example.com")).id == created.id
    assert await users.find_by_emails(["sam@example.com", "nobody@example.com"]) == {"sam@example.com": created}


@pytest.mark.asyncio
async def test_pairing_repository_member_lookup_and_merge(pairing_repo, people):
    pairing = await pairing_repo.create("mentor-1", ["mentee-1", "mentee-2"], family_id="fam-1")

    assert (await pairing_repo.find_for_member("mentor-1")).id == pairing.id
    assert (await pairing_repo.find_for_member("mentee-2")).id == pairing.id
    assert await pairing_repo.find_for_member("mentee-3") is None
    assert await pairing_repo.count_by_family("fam-1") == 1

    merged = await pairing_repo.upsert_many(
        [{"id": pairing.id, "mentor_id": "mentor-1", "mentee_ids": ["mentee-3"]}]
    )

    assert merged[0].mentee_ids == ["mentee-3"]
    assert merged[0].family_id == "fam-1"
    assert await pairing_repo.upsert_many([]) == []


@pytest.mark.asyncio
async def test_pairing_with_people_loads_names(pairing_repo, people):
    pairing = await pairing_repo.create("mentor-2", ["mentee-3"])

    loaded = await pairing_repo.get(pairing.id, with_people=True)

    assert loaded.mentor.name == "Max Mentor"
    assert [m.name for m in loaded.mentees] == ["Mae Mentee"]
    assert loaded.member_ids == ["mentor-2", "mentee-3"]


# --- CLI ---


def test_parser_requires_email_for_promote():
    parser = build_parser()

    assert parser.parse_args(["promote-admin", "--email", "a@example.com"]).email == "a@example.com"
    with pytest.raises(SystemExit):
        parser.parse_args(["promote-admin"])


def test_main_without_command_exits_with_error():
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 1


@pytest.fixture
def container(db_manager, users, clock):
    return SimpleNamespace(
        db_manager=db_manager,
        users=users,
        mirror=UserMirror(db_manager, clock),
        pairing_points=PairingPointsStore(db_manager, clock),
        relational=MagicMock(create_all=AsyncMock()),
    )


@pytest.mark.asyncio
async def test_cli_promote_admin(container, users, people):
    cli = AdminCLI(container)

    assert await cli.promote_admin("mentor2@example.com") is True
    assert (await users.get_by_id("mentor-2")).role == Role.ADMIN
    assert await cli.promote_admin("ghost@example.com") is False


@pytest.mark.asyncio
async def test_cli_index_and_points_commands(container, db_manager):
    cli = AdminCLI(container)
    await db_manager.get_collection("pairing_points").insert_one({"_id": "p1", "weekly_points": 12})

    assert await cli.verify_indexes() is False
    assert await cli.create_indexes() is True
    assert await cli.verify_indexes() is True
    assert await cli.reset_weekly_points() is True
    assert db_manager.get_collection("pairing_points").docs["p1"]["weekly_points"] == 0
    assert await cli.create_tables() is True
    container.relational.create_all.assert_awaited_once()
