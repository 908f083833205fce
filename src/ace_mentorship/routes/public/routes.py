"""
# Member and Public Routes

Leaderboards, published content and membership applications are public. Submission endpoints
require a signed-in identity; their mutations return `ActionResult` bodies like the admin mutations do.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile

from ace_mentorship.container import ServiceContainer
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.announcement import Announcement, BonusActivity
from ace_mentorship.models.application import ApplicationSubmission
from ace_mentorship.models.family import FamilyStanding
from ace_mentorship.models.identity import Identity
from ace_mentorship.models.media import Submission, SubmissionCreate
from ace_mentorship.models.pairing import PairingStanding
from ace_mentorship.models.results import ActionResult
from ace_mentorship.routes.auth.dependencies import (
    get_client_id,
    get_container,
    get_current_identity,
    get_optional_identity,
)

logger = get_logger(prefix="[Public Routes]")

router = APIRouter(tags=["Public"])


@router.get("/leaderboard/families", response_model=List[FamilyStanding])
async def family_leaderboard(container: ServiceContainer = Depends(get_container)):
    return await container.leaderboards.family_leaderboard()


@router.get("/leaderboard/pairings", response_model=List[PairingStanding])
async def pairing_leaderboard(container: ServiceContainer = Depends(get_container)):
    return await container.leaderboards.pairing_leaderboard()


@router.get("/announcements", response_model=List[Announcement])
async def published_announcements(container: ServiceContainer = Depends(get_container)):
    return await container.announcements.list_announcements(published_only=True)


@router.get("/bonuses", response_model=List[BonusActivity])
async def active_bonus_activities(container: ServiceContainer = Depends(get_container)):
    return await container.bonuses.list_bonus_activities(active_only=True)


@router.post("/submissions/upload", response_model=ActionResult)
async def upload_submission_image(
    file: UploadFile = File(...),
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    data = await file.read()
    return await container.submissions.upload_submission_image(
        identity, data, file.filename or "", file.content_type or ""
    )


@router.post("/submissions", response_model=ActionResult)
async def create_submission(
    body: SubmissionCreate,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.submissions.create_submission(
        identity,
        body.image_url,
        body.image_path,
        bonus_activity_ids=body.bonus_activity_ids,
        description=body.description,
    )


@router.get("/submissions/mine", response_model=List[Submission])
async def my_submissions(
    identity: Identity = Depends(get_current_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.submissions.list_own_submissions(identity)


@router.post("/applications", response_model=ActionResult)
async def submit_application(
    body: ApplicationSubmission,
    client_id: str = Depends(get_client_id),
    container: ServiceContainer = Depends(get_container),
):
    return await container.applications.submit_application(body, client_id)
