"""
# Authentication Dependencies

FastAPI dependencies that resolve the caller's identity for each request.

- `get_container`: the process `ServiceContainer` from `app.state`.
- `get_optional_identity`: the verified `Identity` or `None`. The credential is read from the
  `Authorization: Bearer` header first, then from the session cookie. Mutation endpoints pass this
  straight to the service, whose `admin_mutation` boundary decides.
- `get_current_identity`: 401 when no identity resolves.
- `require_admin_identity`: 401 when unauthenticated, 403 when authenticated but not an admin.
  Used by admin read endpoints.

The identity is re-verified on every request; roles are never cached between requests.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from ace_mentorship.container import ServiceContainer
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.identity import Identity
from ace_mentorship.services.authorization import (
    ForbiddenError,
    UnauthenticatedError,
    extract_credential,
    require_admin,
    require_auth,
)

logger = get_logger(prefix="[Auth Dependencies]")


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_client_id(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def get_optional_identity(
    request: Request,
    authorization: Optional[str] = Header(None),
    container: ServiceContainer = Depends(get_container),
) -> Optional[Identity]:
    cookie_value = request.cookies.get(container.settings.SESSION_COOKIE_NAME)
    credential = extract_credential(authorization, cookie_value)
    return await container.verifier.verify(credential)


async def get_current_identity(identity: Optional[Identity] = Depends(get_optional_identity)) -> Identity:
    try:
        return require_auth(identity)
    except UnauthenticatedError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_admin_identity(identity: Optional[Identity] = Depends(get_optional_identity)) -> Identity:
    try:
        return require_admin(identity)
    except UnauthenticatedError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except ForbiddenError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden: Admin access required")
