"""
# Blob Store Client

Object storage for submission images, spoken to over the bucket's JSON API with `httpx`.

- `upload(data, path, content_type)` -> `UploadedImage(url, path)`
- `delete(path)` -> `bool`; a missing object counts as deleted.

Only the media lifecycle uses this client. Permanent media deletion treats a failed blob delete
as best effort: it is logged here and the caller carries on.
"""

from typing import Optional
from urllib.parse import quote

import httpx

from ace_mentorship.config import Settings
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.media import UploadedImage

logger = get_logger(prefix="[BlobStore]")


class BlobStoreError(Exception):
    """Raised when an upload is rejected by the storage API."""


class BlobStore:
    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.bucket = settings.STORAGE_BUCKET
        self._client = http_client or httpx.AsyncClient(timeout=settings.STORAGE_HTTP_TIMEOUT)

    async def close(self) -> None:
        await self._client.aclose()

    def _auth_headers(self) -> dict:
        token = self.settings.STORAGE_ACCESS_TOKEN.get_secret_value()
        return {"Authorization": f"Bearer {token}"} if token else {}

    def public_url(self, path: str) -> str:
        return f"{self.settings.STORAGE_PUBLIC_BASE_URL}/{self.bucket}/{path}"

    async def upload(self, data: bytes, path: str, content_type: str) -> UploadedImage:
        try:
            response = await self._client.post(
                f"{self.settings.STORAGE_API_BASE_URL}/upload/storage/v1/b/{self.bucket}/o",
                params={"uploadType": "media", "name": path},
                headers={**self._auth_headers(), "Content-Type": content_type},
                content=data,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Upload of %s failed: %s", path, e)
            raise BlobStoreError(f"Upload failed for {path}") from e
        logger.info("Uploaded %s (%d bytes)", path, len(data))
        return UploadedImage(url=self.public_url(path), path=path)

    async def delete(self, path: str) -> bool:
        try:
            response = await self._client.delete(
                f"{self.settings.STORAGE_API_BASE_URL}/storage/v1/b/{self.bucket}/o/{quote(path, safe='')}",
                headers=self._auth_headers(),
            )
            if response.status_code == 404:
                logger.warning("Object %s already absent", path)
                return True
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.error("Delete of %s failed: %s", path, e)
            return False
