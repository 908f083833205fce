from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio

from ace_mentorship.container import ServiceContainer
from ace_mentorship.main import create_app
from ace_mentorship.models.identity import VerifiedToken
from ace_mentorship.models.media import UploadedImage
from ace_mentorship.services.identity_provider import IdentityProviderError


@pytest.fixture
def identity_provider():
    provider = MagicMock()
    provider.verify_token = AsyncMock()
    provider.close = AsyncMock()
    return provider


@pytest.fixture
def blob_store():
    store = MagicMock()
    store.upload = AsyncMock(side_effect=lambda data, path, content_type: UploadedImage(url=f"https://cdn/{path}", path=path))
    store.close = AsyncMock()
    return store


@pytest.fixture
def container(settings, db_manager, relational, identity_provider, blob_store, clock, admin, mentor, mentee):
    container = ServiceContainer(
        settings,
        db_manager=db_manager,
        relational=relational,
        identity_provider=identity_provider,
        blob_store=blob_store,
        clock=clock,
    )
    tokens = {"tok-admin": admin, "tok-mentor": mentor, "tok-mentee": mentee}
    container.verifier = MagicMock()
    container.verifier.verify = AsyncMock(side_effect=lambda credential: tokens.get(credential))
    return container


@pytest_asyncio.fixture
async def client(settings, container):
    # lifespan is not run; the container is already wired to test stores
    app = create_app(settings, container=container)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_health_reports_both_stores(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "document_store": "ok", "relational_store": "ok"}


@pytest.mark.asyncio
async def test_admin_reads_distinguish_401_and_403(client, people):
    assert (await client.get("/admin/stats")).status_code == 401
    assert (await client.get("/admin/stats", headers=bearer("tok-mentor"))).status_code == 403

    response = await client.get("/admin/stats", headers=bearer("tok-admin"))

    assert response.status_code == 200
    assert response.json()["total_users"] == 6


@pytest.mark.asyncio
async def test_admin_mutations_return_action_results(client, db_manager):
    forbidden = await client.post("/admin/families", json={"name": "Ohana"}, headers=bearer("tok-mentor"))
    anonymous = await client.post("/admin/families", json={"name": "Ohana"})
    created = await client.post("/admin/families", json={"name": "Ohana"}, headers=bearer("tok-admin"))

    assert forbidden.status_code == 200
    assert forbidden.json()["success"] is False
    assert forbidden.json()["error"] == "Admin access required"
    assert anonymous.json()["error"] == "Authentication required"
    body = created.json()
    assert body["success"] is True
    assert body["family_id"] in db_manager.get_collection("families").docs
    assert "/admin/families" in body["revalidate"]


@pytest.mark.asyncio
async def test_missing_family_is_404(client):
    response = await client.get("/admin/families/nope", headers=bearer("tok-admin"))

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_session_sync_sets_cookie(client, identity_provider, people):
    identity_provider.verify_token.return_value = VerifiedToken(subject="uid-mia", email="mentee@example.com")

    response = await client.post("/auth/session", json={"id_token": "provider-token"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    cookie = response.headers["set-cookie"]
    assert cookie.startswith("firebase-session=provider-token")
    assert "HttpOnly" in cookie
    assert "Max-Age=604800" in cookie


@pytest.mark.asyncio
async def test_failed_session_sync_sets_no_cookie(client, identity_provider, relational):
    identity_provider.verify_token.side_effect = IdentityProviderError("expired")

    response = await client.post("/auth/session", json={"id_token": "stale"})

    assert response.json()["error"] == "Invalid authentication token"
    assert "set-cookie" not in response.headers


@pytest.mark.asyncio
async def test_session_cookie_authenticates(client, container, mentee):
    client.cookies.set("firebase-session", "tok-mentee")

    response = await client.get("/auth/me")

    assert response.status_code == 200
    assert response.json()["id"] == "mentee-1"
    container.verifier.verify.assert_awaited_with("tok-mentee")


@pytest.mark.asyncio
async def test_me_requires_sign_in(client):
    assert (await client.get("/auth/me")).status_code == 401


@pytest.mark.asyncio
async def test_sign_out_clears_cookie(client):
    response = await client.post("/auth/sign-out")

    assert response.json()["redirect_to"] == "/login"
    assert 'firebase-session=""' in response.headers["set-cookie"]


@pytest.mark.asyncio
async def test_submission_upload(client, blob_store):
    response = await client.post(
        "/submissions/upload",
        files={"file": ("beach.png", b"png-bytes", "image/png")},
        headers=bearer("tok-mentee"),
    )

    body = response.json()
    assert body["success"] is True
    assert body["image_path"].startswith("submissions/mentee-1/")
    blob_store.upload.assert_awaited_once()


@pytest.mark.asyncio
async def test_public_leaderboards_need_no_credentials(client, db_manager, people):
    await db_manager.get_collection("families").insert_one({"_id": "fam-1", "name": "Ohana", "is_archived": False})

    families = await client.get("/leaderboard/families")
    pairings = await client.get("/leaderboard/pairings")

    assert families.status_code == 200
    assert families.json()[0]["name"] == "Ohana"
    assert pairings.json() == []


@pytest.mark.asyncio
async def test_patch_body_is_typed(client, db_manager):
    await db_manager.get_collection("announcements").insert_one(
        {"_id": "a1", "title": "Kickoff", "content": "Hi", "is_published": False, "published_at": None}
    )

    response = await client.patch(
        "/admin/announcements/a1",
        json={"is_published": True, "published_at": "2026-01-01T00:00:00Z"},
        headers=bearer("tok-admin"),
    )
    bad = await client.patch(
        "/admin/families/fam-1", json={"family_head_ids": "h1"}, headers=bearer("tok-admin")
    )

    assert response.json()["success"] is True
    assert isinstance(db_manager.get_collection("announcements").docs["a1"]["published_at"], datetime)
    assert bad.status_code == 422


@pytest.mark.asyncio
async def test_public_application_and_admin_review(client, db_manager, people):
    submitted = await client.post(
        "/applications",
        json={"name": "Linh", "email": "LINH@example.com", "phone": "612-555-0100", "role": "ANH"},
    )
    application_id = submitted.json()["id"]

    anonymous = await client.get("/admin/applications")
    listed = await client.get("/admin/applications", params={"role": "ANH"}, headers=bearer("tok-admin"))
    deleted = await client.delete(f"/admin/applications/{application_id}", headers=bearer("tok-admin"))

    assert submitted.json()["success"] is True
    assert anonymous.status_code == 401
    assert [a["email"] for a in listed.json()] == ["linh@example.com"]
    assert deleted.json()["success"] is True
    assert db_manager.get_collection("ace_applications").docs == {}


@pytest.mark.asyncio
async def test_user_export_is_csv(client, people):
    response = await client.get("/admin/users/export", headers=bearer("tok-admin"))
    forbidden = await client.get("/admin/users/export", headers=bearer("tok-mentor"))

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.text.splitlines()[0] == "name,email,role,family,created_at"
    assert len(response.text.splitlines()) == 7
    assert forbidden.status_code == 403
