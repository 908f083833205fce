"""
# Admin Routes

Every endpoint under `/admin` is admin-only.

- **Mutations** (POST/PATCH/DELETE) take the optional identity and hand it to the service. The
  service's mutation boundary answers with an `ActionResult`, so refusals ("Authentication required",
  "Admin access required", validation messages) come back as `{"success": false, "error": ...}`
  with HTTP 200.
- **Reads** (GET) resolve the identity through `require_admin_identity` and answer 401/403 directly.

| Area | Endpoints |
|------|-----------|
| Points | `POST /pairings/{id}/points`, `GET /points/history`, `GET /points/standings` |
| Media | `GET /media`, `GET /media/stats`, `POST /media/{id}/archive`, `POST /media/{id}/restore`, `DELETE /media/{id}` |
| Families | `GET/POST /families`, `GET/PATCH/DELETE /families/{id}` |
| Pairings | `GET/POST /pairings`, `GET/PATCH/DELETE /pairings/{id}`, `POST/DELETE /pairings/{id}/mentees` |
| Imports | `POST /import/users`, `POST /import/pairings` |
| Content | `/announcements`, `/bonuses` |
| Review | `GET /submissions`, `POST /submissions/{id}/approve`, `POST /submissions/{id}/reject` |
| Users | `GET /users`, `GET /users/export`, `PATCH /users/{id}/role`, `DELETE /users/{id}` |
| Applications | `GET /applications`, `DELETE /applications/{id}` |
| Audit | `GET /audit-logs` |
| Stats | `GET /stats` |
"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status

from ace_mentorship.container import ServiceContainer
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.announcement import Announcement, AnnouncementUpdate, BonusActivity, BonusActivityUpdate
from ace_mentorship.models.application import ApplicantRole, Application
from ace_mentorship.models.audit import AuditEntry, AuditQuery
from ace_mentorship.models.family import FamilyUpdate, FamilyView
from ace_mentorship.models.identity import Identity, UserWithFamily
from ace_mentorship.models.media import MediaFilter, MediaItem, MediaStats, Submission, SubmissionStatus
from ace_mentorship.models.pairing import PairingStanding
from ace_mentorship.models.results import ActionResult
from ace_mentorship.models.stats import AdminStats
from ace_mentorship.routes.admin.models import (
    AnnouncementCreateRequest,
    ArchiveMediaRequest,
    BonusCreateRequest,
    FamilyCreateRequest,
    MenteeRequest,
    PairingCreateRequest,
    PairingImportRequest,
    PairingUpdateRequest,
    PointsAdjustRequest,
    RejectSubmissionRequest,
    RoleUpdateRequest,
    UserImportRequest,
)
from ace_mentorship.routes.auth.dependencies import get_container, get_optional_identity, require_admin_identity

logger = get_logger(prefix="[Admin Routes]")

router = APIRouter(prefix="/admin", tags=["Admin"])


# --- Points ---


@router.post("/pairings/{pairing_id}/points", response_model=ActionResult)
async def adjust_pairing_points(
    pairing_id: str,
    body: PointsAdjustRequest,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.points.adjust_pairing_points(identity, pairing_id, body.amount, body.reason)


@router.get("/points/history", response_model=List[AuditEntry])
async def get_points_history(
    pairing_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    identity: Identity = Depends(require_admin_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.points.get_points_history(identity, pairing_id=pairing_id, limit=limit)


@router.get("/points/standings", response_model=List[PairingStanding])
async def get_pairing_standings(
    identity: Identity = Depends(require_admin_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.points.list_pairing_standings(identity)


# --- Media ---


@router.get("/media", response_model=List[MediaItem])
async def get_media_library(
    media_filter: MediaFilter = Query(MediaFilter.ALL, alias="filter"),
    identity: Identity = Depends(require_admin_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.media.get_media_library(identity, media_filter)


@router.get("/media/stats", response_model=MediaStats)
async def get_media_stats(
    identity: Identity = Depends(require_admin_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.media.get_media_stats(identity)


@router.post("/media/{submission_id}/archive", response_model=ActionResult)
async def archive_media(
    submission_id: str,
    body: Optional[ArchiveMediaRequest] = Body(None),
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    reason = body.reason if body else None
    return await container.media.archive_media(identity, submission_id, reason)


@router.post("/media/{submission_id}/restore", response_model=ActionResult)
async def restore_media(
    submission_id: str,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.media.restore_media(identity, submission_id)


@router.delete("/media/{submission_id}", response_model=ActionResult)
async def delete_archived_media(
    submission_id: str,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.media.delete_archived_media(identity, submission_id)


# --- Families ---


@router.get("/families", response_model=List[FamilyView])
async def list_families(
    include_archived: bool = Query(False),
    identity: Identity = Depends(require_admin_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.families.list_families(identity, include_archived=include_archived)


@router.get("/families/{family_id}", response_model=FamilyView)
async def get_family(
    family_id: str,
    identity: Identity = Depends(require_admin_identity),
    container: ServiceContainer = Depends(get_container),
):
    family = await container.families.get_family(identity, family_id)
    if family is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Family not found")
    return family


@router.post("/families", response_model=ActionResult)
async def create_family(
    body: FamilyCreateRequest,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.families.create_family(
        identity, body.name, family_head_ids=body.family_head_ids, aunt_uncle_ids=body.aunt_uncle_ids
    )


@router.patch("/families/{family_id}", response_model=ActionResult)
async def update_family(
    family_id: str,
    updates: FamilyUpdate,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.families.update_family(identity, family_id, updates)


@router.delete("/families/{family_id}", response_model=ActionResult)
async def delete_family(
    family_id: str,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.families.delete_family(identity, family_id)


# --- Pairings ---


@router.get("/pairings")
async def list_pairings(
    identity: Identity = Depends(require_admin_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.pairings.list_pairings(identity)


@router.get("/pairings/{pairing_id}")
async def get_pairing(
    pairing_id: str,
    identity: Identity = Depends(require_admin_identity),
    container: ServiceContainer = Depends(get_container),
):
    pairing = await container.pairings.get_pairing(identity, pairing_id)
    if pairing is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pairing not found")
    return pairing


@router.post("/pairings", response_model=ActionResult)
async def create_pairing(
    body: PairingCreateRequest,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.pairings.create_pairing(identity, body.family_id, body.mentor_id, body.mentee_ids)


@router.patch("/pairings/{pairing_id}", response_model=ActionResult)
async def update_pairing(
    pairing_id: str,
    body: PairingUpdateRequest,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.pairings.update_pairing(
        identity, pairing_id, family_id=body.family_id, mentor_id=body.mentor_id, mentee_ids=body.mentee_ids
    )


@router.delete("/pairings/{pairing_id}", response_model=ActionResult)
async def delete_pairing(
    pairing_id: str,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.pairings.delete_pairing(identity, pairing_id)


@router.post("/pairings/{pairing_id}/mentees", response_model=ActionResult)
async def add_mentee(
    pairing_id: str,
    body: MenteeRequest,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.pairings.add_mentee(identity, pairing_id, body.mentee_id)


@router.delete("/pairings/{pairing_id}/mentees/{mentee_id}", response_model=ActionResult)
async def remove_mentee(
    pairing_id: str,
    mentee_id: str,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.pairings.remove_mentee(identity, pairing_id, mentee_id)


# --- Imports ---


@router.post("/import/users", response_model=ActionResult)
async def import_users(
    body: UserImportRequest,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    logger.info(f"User import requested with {len(body.rows)} rows")
    return await container.imports.import_users(identity, body.rows)


@router.post("/import/pairings", response_model=ActionResult)
async def import_pairings(
    body: PairingImportRequest,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    logger.info(f"Pairing import requested with {len(body.rows)} rows")
    return await container.imports.import_pairings(identity, body.rows)


# --- Announcements ---


@router.get("/announcements", response_model=List[Announcement])
async def list_announcements(
    identity: Identity = Depends(require_admin_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.announcements.list_announcements()


@router.post("/announcements", response_model=ActionResult)
async def create_announcement(
    body: AnnouncementCreateRequest,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.announcements.create_announcement(
        identity,
        body.title,
        body.content,
        is_published=body.is_published,
        is_pinned=body.is_pinned,
        published_at=body.published_at,
    )


@router.patch("/announcements/{announcement_id}", response_model=ActionResult)
async def update_announcement(
    announcement_id: str,
    updates: AnnouncementUpdate,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.announcements.update_announcement(identity, announcement_id, updates)


@router.delete("/announcements/{announcement_id}", response_model=ActionResult)
async def delete_announcement(
    announcement_id: str,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.announcements.delete_announcement(identity, announcement_id)


# --- Bonus activities ---


@router.get("/bonuses", response_model=List[BonusActivity])
async def list_bonus_activities(
    identity: Identity = Depends(require_admin_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.bonuses.list_bonus_activities()


@router.post("/bonuses", response_model=ActionResult)
async def create_bonus_activity(
    body: BonusCreateRequest,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.bonuses.create_bonus_activity(identity, body.name, body.description, body.points)


@router.patch("/bonuses/{bonus_id}", response_model=ActionResult)
async def update_bonus_activity(
    bonus_id: str,
    updates: BonusActivityUpdate,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.bonuses.update_bonus_activity(identity, bonus_id, updates)


@router.delete("/bonuses/{bonus_id}", response_model=ActionResult)
async def delete_bonus_activity(
    bonus_id: str,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.bonuses.delete_bonus_activity(identity, bonus_id)


# --- Submissions ---


@router.get("/submissions", response_model=List[Submission])
async def list_submissions(
    submission_status: Optional[SubmissionStatus] = Query(None, alias="status"),
    identity: Identity = Depends(require_admin_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.submissions.list_submissions(identity, submission_status)


@router.post("/submissions/{submission_id}/approve", response_model=ActionResult)
async def approve_submission(
    submission_id: str,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.submissions.approve_submission(identity, submission_id)


@router.post("/submissions/{submission_id}/reject", response_model=ActionResult)
async def reject_submission(
    submission_id: str,
    body: RejectSubmissionRequest,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.submissions.reject_submission(identity, submission_id, body.reason)


# --- Users ---


@router.get("/users", response_model=List[UserWithFamily])
async def list_users(
    identity: Identity = Depends(require_admin_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.user_service.list_users(identity)


@router.get("/users/export")
async def export_users(
    identity: Identity = Depends(require_admin_identity),
    container: ServiceContainer = Depends(get_container),
):
    result = await container.user_service.export_users_csv(identity)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.error)
    return Response(
        content=result.data,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="users.csv"'},
    )


@router.patch("/users/{user_id}/role", response_model=ActionResult)
async def update_user_role(
    user_id: str,
    body: RoleUpdateRequest,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.user_service.update_user_role(identity, user_id, body.role)


@router.delete("/users/{user_id}", response_model=ActionResult)
async def delete_user(
    user_id: str,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.user_service.delete_user(identity, user_id)


# --- Applications ---


@router.get("/applications", response_model=List[Application])
async def list_applications(
    role: Optional[ApplicantRole] = Query(None),
    identity: Identity = Depends(require_admin_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.applications.list_applications(identity, role)


@router.delete("/applications/{application_id}", response_model=ActionResult)
async def delete_application(
    application_id: str,
    identity: Optional[Identity] = Depends(get_optional_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.applications.delete_application(identity, application_id)


# --- Audit and stats ---


@router.get("/audit-logs", response_model=List[AuditEntry])
async def list_audit_logs(
    query: AuditQuery = Depends(),
    identity: Identity = Depends(require_admin_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.audit.list_entries(query)


@router.get("/stats", response_model=AdminStats)
async def get_admin_stats(
    identity: Identity = Depends(require_admin_identity),
    container: ServiceContainer = Depends(get_container),
):
    return await container.leaderboards.admin_stats(identity)
