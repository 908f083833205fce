"""
# Identity Verification & Authorization Gate

## Identity Verifier

`IdentityVerifier.verify(credential)` turns an opaque bearer credential (from the
`Authorization: Bearer` header or the `firebase-session` cookie) into a local `Identity`:

1. The identity provider verifies the token cryptographically.
2. The subject is matched to a local identity by `external_uid`.
3. When no identity carries that subject yet (imported users before their first sign-in), the
   verified email is used instead.

Any failure resolves to `None`. Callers cannot tell an invalid token from a missing one, and the
cause is only logged at DEBUG.

## Authorization Gate

`require_auth()` and `require_admin()` raise two distinct conditions:

| Condition | Exception | Meaning |
|-----------|-----------|---------|
| No identity | `UnauthenticatedError` | Missing, invalid or unknown credential |
| Wrong role | `ForbiddenError` | Authenticated, but not an admin |

The role is taken from the identity verified for the current request; nothing is cached across
requests, so a demoted admin loses access on their next call.
"""

from typing import Optional

from ace_mentorship.database.repositories import UserRepository
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.identity import Identity, Role
from ace_mentorship.services.identity_provider import IdentityProvider

logger = get_logger(prefix="[Authorization]")

BEARER_PREFIX = "Bearer "


class AuthorizationError(Exception):
    """Base class for authentication and authorization failures."""


class UnauthenticatedError(AuthorizationError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ForbiddenError(AuthorizationError):
    def __init__(self, message: str = "Forbidden: Admin access required"):
        super().__init__(message)


def extract_credential(authorization: Optional[str], cookie_value: Optional[str]) -> Optional[str]:
    """Prefer a bearer header; fall back to the session cookie."""
    if authorization and authorization.startswith(BEARER_PREFIX):
        token = authorization[len(BEARER_PREFIX):].strip()
        if token:
            return token
    return cookie_value or None


class IdentityVerifier:
    def __init__(self, provider: IdentityProvider, users: UserRepository):
        self.provider = provider
        self.users = users

    async def verify(self, credential: Optional[str]) -> Optional[Identity]:
        if not credential:
            return None
        try:
            token = await self.provider.verify_token(credential)
            identity = await self.users.get_by_external_uid(token.subject)
            if identity is None and token.email:
                identity = await self.users.get_by_email(token.email)
            return identity
        except Exception:
            # Soft failure: no detail about why the credential was refused leaves this method.
            logger.debug("Credential verification failed", exc_info=True)
            return None


def require_auth(identity: Optional[Identity]) -> Identity:
    if identity is None:
        raise UnauthenticatedError()
    return identity


def require_role(identity: Optional[Identity], role: Role) -> Identity:
    identity = require_auth(identity)
    if identity.role != role:
        logger.warning("Identity %s with role %s denied (requires %s)", identity.id, identity.role.value, role.value)
        raise ForbiddenError()
    return identity


def require_admin(identity: Optional[Identity]) -> Identity:
    return require_role(identity, Role.ADMIN)
