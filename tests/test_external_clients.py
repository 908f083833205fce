import json

import httpx
import pytest

from ace_mentorship.services.blob_storage import BlobStore, BlobStoreError
from ace_mentorship.services.identity_provider import IdentityProvider, IdentityProviderError


def client_for(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def provider_settings(settings):
    return settings.model_copy(update={"IDENTITY_PROJECT_ID": "ace-test", "STORAGE_BUCKET": "ace-media"})


@pytest.mark.asyncio
async def test_create_user_returns_subject(provider_settings):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"localId": "uid-123"})

    provider = IdentityProvider(provider_settings, client_for(handler))

    assert await provider.create_user("a@example.com", "secret", "Ann") == "uid-123"
    assert seen["path"].endswith("/accounts:signUp")
    assert seen["body"]["displayName"] == "Ann"
    await provider.close()


@pytest.mark.asyncio
async def test_create_user_surfaces_provider_error(provider_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "EMAIL_EXISTS"}})

    provider = IdentityProvider(provider_settings, client_for(handler))

    with pytest.raises(IdentityProviderError, match="EMAIL_EXISTS"):
        await provider.create_user("a@example.com", "secret", "Ann")
    await provider.close()


@pytest.mark.asyncio
async def test_create_user_handles_non_json_error_body(provider_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad Gateway</html>")

    provider = IdentityProvider(provider_settings, client_for(handler))

    with pytest.raises(IdentityProviderError, match="Bad Gateway"):
        await provider.create_user("a@example.com", "secret", "Ann")
    await provider.close()


@pytest.mark.asyncio
async def test_create_user_wraps_transport_errors(provider_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    provider = IdentityProvider(provider_settings, client_for(handler))

    with pytest.raises(IdentityProviderError, match="connection refused"):
        await provider.create_user("a@example.com", "secret", "Ann")
    await provider.close()


@pytest.mark.asyncio
async def test_delete_user_reports_failure_without_raising(provider_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    provider = IdentityProvider(provider_settings, client_for(handler))

    assert await provider.delete_user("uid-123") is False
    await provider.close()


@pytest.mark.asyncio
async def test_malformed_token_is_rejected(provider_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"keys": []})

    provider = IdentityProvider(provider_settings, client_for(handler))

    with pytest.raises(IdentityProviderError):
        await provider.verify_token("not-a-jwt")
    await provider.close()


@pytest.mark.asyncio
async def test_blob_upload_returns_public_url(provider_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["name"] == "submissions/u1/1.jpg"
        assert request.headers["content-type"] == "image/jpeg"
        return httpx.Response(200, json={"name": "submissions/u1/1.jpg"})

    store = BlobStore(provider_settings, client_for(handler))

    uploaded = await store.upload(b"jpeg-bytes", "submissions/u1/1.jpg", "image/jpeg")

    assert uploaded.path == "submissions/u1/1.jpg"
    assert uploaded.url == "https://storage.googleapis.com/ace-media/submissions/u1/1.jpg"
    await store.close()


@pytest.mark.asyncio
async def test_blob_upload_failure_raises(provider_settings):
    store = BlobStore(provider_settings, client_for(lambda request: httpx.Response(403)))

    with pytest.raises(BlobStoreError):
        await store.upload(b"x", "submissions/u1/1.jpg", "image/jpeg")
    await store.close()


@pytest.mark.asyncio
async def test_blob_delete_treats_missing_object_as_deleted(provider_settings):
    missing = BlobStore(provider_settings, client_for(lambda request: httpx.Response(404)))
    broken = BlobStore(provider_settings, client_for(lambda request: httpx.Response(500)))

    assert await missing.delete("submissions/u1/1.jpg") is True
    assert await broken.delete("submissions/u1/1.jpg") is False
    await missing.close()
    await broken.close()
