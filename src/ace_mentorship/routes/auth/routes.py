"""
# Session Routes

| Method | Path | Purpose |
|--------|------|---------|
| POST | `/auth/session` | Verify a provider ID token, provision the local identity, set the session cookie |
| POST | `/auth/sign-up` | Create a provider account and local identity |
| POST | `/auth/sign-out` | Delete the session cookie |
| GET | `/auth/me` | Current identity (401 when signed out) |
| GET | `/auth/profile` | Current identity with family and pairing |
| PATCH | `/auth/profile` | Self-service name/avatar edit |
| GET | `/auth/stats` | Own submission totals |

## Session Cookie

`firebase-session` holds the ID token: `httpOnly`, `secure` outside development, 7-day
`max_age`, path `/`.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Response

from ace_mentorship.config import Settings
from ace_mentorship.container import ServiceContainer
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.identity import Identity, UserProfile
from ace_mentorship.models.results import ActionResult
from ace_mentorship.models.stats import UserStats
from ace_mentorship.routes.auth.dependencies import (
    get_client_id,
    get_container,
    get_current_identity,
    get_optional_identity,
)
from ace_mentorship.routes.auth.models import ProfileUpdateRequest, SessionSyncRequest, SignUpRequest

logger = get_logger(prefix="[Session Routes]")

router = APIRouter(prefix="/auth", tags=["Authentication"])


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_COOKIE_MAX_AGE,
        path=settings.SESSION_COOKIE_PATH,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path=settings.SESSION_COOKIE_PATH,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


@router.post("/session", response_model=ActionResult)
async def sync_session(
    body: SessionSyncRequest,
    response: Response,
    client_id: str = Depends(get_client_id),
    container: ServiceContainer = Depends(get_container),
):
    """Called by the client after a successful provider sign-in."""
    result = await container.sessions.sync_session(body.id_token, client_id)
    if result.success:
        set_session_cookie(response, body.id_token, container.settings)
    return result


@router.post("/sign-up", response_model=ActionResult)
async def sign_up(
    body: SignUpRequest,
    client_id: str = Depends(get_client_id),
    container: ServiceContainer = Depends(get_container),
):
    return await container.sessions.sign_up(body.name, body.email, body.password, body.confirm_password, client_id)


@router.post("/sign-out", response_model=ActionResult)
async def sign_out(response: Response, container: ServiceContainer = Depends(get_container)):
    clear_session_cookie(response, container.settings)
    return ActionResult.ok(redirect_to="/login")


@router.get("/me", response_model=Identity)
async def me(identity: Identity = Depends(get_current_identity)):
    return identity


@router.get("/profile", response_model=UserProfile)
async def get_profile(
    identity: Identity = Depends(get_current_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.user_service.get_profile(identity)


@router.patch("/profile", response_model=ActionResult)
async def update_profile(
    body: ProfileUpdateRequest,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.user_service.update_own_profile(identity, name=body.name, avatar_url=body.avatar_url)


@router.get("/stats", response_model=UserStats)
async def get_own_stats(
    identity: Identity = Depends(get_current_identity),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.leaderboards.user_stats(identity)
