"""
# Identity Provider Client

Boundary to the external identity provider (Firebase Authentication compatible).

## Verification

ID tokens are RS256 JWTs. The provider publishes its signing keys as a JWKS document; keys are
fetched with `httpx`, cached for `IDENTITY_JWKS_CACHE_SECONDS`, and used by `python-jose` to
verify signature, audience (project id) and issuer.

## Provisioning

Bulk user import and admin user deletion call the provider's account REST API:

- `accounts:signUp` creates an email/password account and returns its subject id.
- `accounts:delete` removes an account (requires the admin bearer token).

Credential issuance itself (sign-in, password reset) stays with the provider and its client SDK.
"""

import time
from typing import Any, Dict, Optional

import httpx
from jose import JWTError, jwt

from ace_mentorship.config import Settings
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.identity import VerifiedToken

logger = get_logger(prefix="[IdentityProvider]")


class IdentityProviderError(Exception):
    """Raised when the provider rejects a token or an administrative call."""


class IdentityProvider:
    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = http_client or httpx.AsyncClient(timeout=settings.IDENTITY_HTTP_TIMEOUT)
        self._jwks: Optional[Dict[str, Any]] = None
        self._jwks_fetched_at = 0.0

    async def close(self) -> None:
        await self._client.aclose()

    async def _get_jwks(self, force: bool = False) -> Dict[str, Any]:
        age = time.monotonic() - self._jwks_fetched_at
        if self._jwks is None or force or age > self.settings.IDENTITY_JWKS_CACHE_SECONDS:
            response = await self._client.get(self.settings.IDENTITY_JWKS_URL)
            response.raise_for_status()
            self._jwks = response.json()
            self._jwks_fetched_at = time.monotonic()
            logger.debug("Refreshed JWKS (%d keys)", len(self._jwks.get("keys", [])))
        return self._jwks

    async def _signing_key(self, kid: str) -> Dict[str, Any]:
        for force in (False, True):
            jwks = await self._get_jwks(force=force)
            for key in jwks.get("keys", []):
                if key.get("kid") == kid:
                    return key
        raise IdentityProviderError("Unknown signing key")

    async def verify_token(self, token: str) -> VerifiedToken:
        """
        Verify an ID token and return the claims the provider vouches for.

        Raises:
            IdentityProviderError: On any signature, audience, issuer or expiry problem.
        """
        try:
            header = jwt.get_unverified_header(token)
            key = await self._signing_key(header.get("kid", ""))
            claims = jwt.decode(
                token,
                key,
                algorithms=["RS256"],
                audience=self.settings.IDENTITY_PROJECT_ID,
                issuer=self.settings.identity_issuer,
            )
        except JWTError as e:
            raise IdentityProviderError(str(e)) from e
        except httpx.HTTPError as e:
            raise IdentityProviderError(f"JWKS fetch failed: {e}") from e

        subject = claims.get("sub") or claims.get("user_id")
        if not subject:
            raise IdentityProviderError("Token has no subject")
        return VerifiedToken(
            subject=subject,
            email=claims.get("email"),
            name=claims.get("name"),
            picture=claims.get("picture"),
            claims=claims,
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            return error.get("message", response.text)
        return response.text

    async def create_user(self, email: str, password: str, display_name: str) -> str:
        """
        Create an email/password account; returns the provider subject id.

        Raises:
            IdentityProviderError: Transport failure, an error status or an unreadable reply.
        """
        try:
            response = await self._client.post(
                f"{self.settings.IDENTITY_API_BASE_URL}/accounts:signUp",
                params={"key": self.settings.IDENTITY_API_KEY.get_secret_value()},
                json={"email": email, "password": password, "displayName": display_name, "returnSecureToken": False},
            )
        except httpx.HTTPError as e:
            raise IdentityProviderError(f"Account creation failed for {email}: {e}") from e
        if response.status_code >= 400:
            raise IdentityProviderError(f"Account creation failed for {email}: {self._error_message(response)}")
        try:
            return response.json()["localId"]
        except (ValueError, KeyError) as e:
            raise IdentityProviderError(f"Account creation for {email} returned no account id") from e

    async def delete_user(self, subject: str) -> bool:
        """Delete a provider account. Returns `False` instead of raising."""
        try:
            response = await self._client.post(
                f"{self.settings.IDENTITY_API_BASE_URL}/projects/{self.settings.IDENTITY_PROJECT_ID}/accounts:delete",
                headers={"Authorization": f"Bearer {self.settings.IDENTITY_ADMIN_TOKEN.get_secret_value()}"},
                json={"localId": subject},
            )
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.error("Failed to delete provider account %s: %s", subject, e)
            return False
