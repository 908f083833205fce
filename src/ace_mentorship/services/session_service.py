"""
# Session Service

Sign-up and session sync against the external identity provider.

## Session Sync

After the client signs in with the provider it posts the ID token here:

1. The caller's IP is rate limited (`SESSION_SYNC_RATE_LIMIT` per `SESSION_SYNC_RATE_WINDOW`).
2. The token is verified.
3. The subject is resolved to a local identity. An identity imported before its first sign-in is
   matched by email and linked to the subject. A subject with no local identity at all is
   provisioned as a `MENTEE` (relational first, then the document mirror).
4. The route stores the token in the `firebase-session` cookie.

Credential issuance stays with the provider; this service never sees passwords except to forward a
sign-up request.
"""

from typing import Optional

import httpx

from ace_mentorship.config import Settings
from ace_mentorship.database.repositories import UserRepository, normalize_email
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.identity import Identity, Role
from ace_mentorship.models.results import ActionResult
from ace_mentorship.services.identity_provider import IdentityProvider, IdentityProviderError
from ace_mentorship.services.rate_limiter import RateLimiter
from ace_mentorship.services.user_mirror import UserMirror

logger = get_logger(prefix="[SessionService]")

MIN_PASSWORD_LENGTH = 8
TOO_MANY_REQUESTS = "Too many requests. Please try again later."


class SessionService:
    def __init__(
        self,
        identity_provider: IdentityProvider,
        users: UserRepository,
        mirror: UserMirror,
        rate_limiter: RateLimiter,
        settings: Settings,
    ):
        self.identity_provider = identity_provider
        self.users = users
        self.mirror = mirror
        self.rate_limiter = rate_limiter
        self.settings = settings

    async def _allowed(self, operation: str, client_id: str) -> bool:
        result = await self.rate_limiter.check(
            f"{operation}:{client_id}", self.settings.SESSION_SYNC_RATE_LIMIT, self.settings.SESSION_SYNC_RATE_WINDOW
        )
        return result.success

    async def sign_up(
        self, name: str, email: str, password: str, confirm_password: str, client_id: str = "unknown"
    ) -> ActionResult:
        if not email or not password or not name:
            return ActionResult.fail("All fields are required")
        if password != confirm_password:
            return ActionResult.fail("Passwords do not match")
        if len(password) < MIN_PASSWORD_LENGTH:
            return ActionResult.fail(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if not await self._allowed("sign_up", client_id):
            return ActionResult.fail(TOO_MANY_REQUESTS)

        email = normalize_email(email)
        try:
            if await self.users.get_by_email(email) is not None:
                return ActionResult.fail("Email already in use")
            subject = await self.identity_provider.create_user(email, password, name.strip())
        except IdentityProviderError as e:
            if "EMAIL_EXISTS" in str(e):
                return ActionResult.fail("Email already in use")
            logger.warning("Provider refused sign-up for %s: %s", email, e)
            return ActionResult.fail("Failed to create account. Please try again.")
        except Exception:
            logger.error("Sign-up failed for %s", email, exc_info=True)
            return ActionResult.fail("An unexpected error occurred")

        try:
            identity = await self.users.create(email, name.strip(), Role.MENTEE, external_uid=subject)
        except Exception:
            logger.error("Provider account %s created but local identity was not", subject, exc_info=True)
            return ActionResult.fail("An unexpected error occurred")
        await self.mirror.upsert(identity)
        return ActionResult.ok(redirect_to="/login?message=account-created", needs_client_auth=True)

    async def _resolve_or_provision(self, subject: str, email: Optional[str], name: Optional[str], picture: Optional[str]) -> Identity:
        identity = await self.users.get_by_external_uid(subject)
        if identity is not None:
            return identity

        if email:
            identity = await self.users.get_by_email(email)
            if identity is not None:
                await self.users.link_external_uid(identity.id, subject)
                identity = identity.model_copy(update={"external_uid": subject})
                await self.mirror.upsert(identity)
                logger.info(f"Linked provider subject to existing identity {identity.id}")
                return identity

        logger.warning(f"Provisioning missing local identity for provider subject {subject}")
        identity = await self.users.create(
            email or f"{subject}@unknown.invalid",
            name or "Unknown",
            Role.MENTEE,
            external_uid=subject,
            avatar_url=picture,
        )
        await self.mirror.upsert(identity)
        return identity

    async def sync_session(self, id_token: str, client_id: str = "unknown") -> ActionResult:
        """Verify a fresh ID token and make sure a local identity exists for it."""
        if not await self._allowed("session_sync", client_id):
            return ActionResult.fail(TOO_MANY_REQUESTS)
        if not id_token:
            return ActionResult.fail("Invalid authentication token")

        try:
            token = await self.identity_provider.verify_token(id_token)
        except (IdentityProviderError, httpx.HTTPError):
            logger.debug("Session sync refused an invalid token", exc_info=True)
            return ActionResult.fail("Invalid authentication token")

        try:
            identity = await self._resolve_or_provision(token.subject, token.email, token.name, token.picture)
        except Exception:
            logger.error("Session sync failed for subject %s", token.subject, exc_info=True)
            return ActionResult.fail("Authentication failed")

        return ActionResult.ok(identity=identity.model_dump(mode="json"), redirect_to="/dashboard")
