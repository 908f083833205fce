"""
# Application Service

Membership applications submitted from the public site.

Submission needs no sign-in, so it is rate limited per client (`APPLICATION_RATE_LIMIT` per
`APPLICATION_RATE_WINDOW`). Name, email, phone and a known role are required. Text answers are
trimmed, the email is lowercased and a blank university falls back to the program's home campus.
Only the question set matching the role is stored.

Admins list applications newest first (optionally for one role) and delete them; deletions are
audited.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union
from uuid import uuid4

from pydantic import ValidationError

from ace_mentorship.config import Settings
from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.database.repositories import normalize_email
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.application import (
    DEFAULT_UNIVERSITY,
    FAMILY_HEAD_FIELDS,
    PAIRING_TEXT_FIELDS,
    ApplicantRole,
    Application,
    ApplicationSubmission,
)
from ace_mentorship.models.audit import AuditAction, TargetType
from ace_mentorship.models.identity import Identity
from ace_mentorship.models.results import ActionResult
from ace_mentorship.services.audit_service import AuditTrail
from ace_mentorship.services.authorization import require_admin
from ace_mentorship.services.mutation_pipeline import NotFoundFailure, admin_mutation
from ace_mentorship.services.rate_limiter import RateLimiter
from ace_mentorship.utils.week import utc_now

logger = get_logger(prefix="[ApplicationService]")

APPLICATION_PATHS = ["/admin/applications"]
REQUIRED_FIELDS_MESSAGE = "Please fill in all required fields."
SUBMIT_FAILED_MESSAGE = "Failed to submit application. Please try again."
TOO_MANY_APPLICATIONS = "Too many applications from this device. Please try again later."

SHARED_TEXT_FIELDS = (
    "name",
    "pronouns",
    "phone",
    "instagram",
    "majors_minors",
    "hobbies",
    "music_taste",
    "perfect_day",
    "dream_vacation",
    "additional_info",
    "final_comments",
    "self_intro",
)
SHARED_CHOICE_FIELDS = ("school_year", "lives_on_campus", "reach_out_style", "available_for_reveal")


def _build_document(form: ApplicationSubmission, role: ApplicantRole) -> Dict[str, Any]:
    doc: Dict[str, Any] = {field: getattr(form, field).strip() for field in SHARED_TEXT_FIELDS}
    doc.update({field: getattr(form, field) for field in SHARED_CHOICE_FIELDS})
    doc["email"] = normalize_email(form.email)
    doc["university"] = form.university.strip() or DEFAULT_UNIVERSITY
    doc["role"] = role.value
    doc["intro_extro_scale"] = form.intro_extro_scale

    if role is ApplicantRole.FAMILY_HEAD:
        doc["family_head_acknowledged"] = bool(form.family_head_acknowledged)
        doc.update({field: getattr(form, field).strip() for field in FAMILY_HEAD_FIELDS})
    else:
        doc.update({field: getattr(form, field).strip() for field in PAIRING_TEXT_FIELDS})
        doc["willing_multiple"] = form.willing_multiple
        doc["meet_frequency"] = form.meet_frequency
        doc["preferred_activities"] = [a.strip() for a in form.preferred_activities if a and a.strip()]
    return doc


class ApplicationService:
    def __init__(
        self,
        db_manager: DatabaseManager,
        audit: AuditTrail,
        rate_limiter: RateLimiter,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db_manager = db_manager
        self.audit = audit
        self.rate_limiter = rate_limiter
        self.settings = settings
        self.clock = clock
        self.collection_name = "ace_applications"

    @property
    def collection(self):
        return self.db_manager.get_collection(self.collection_name)

    async def submit_application(
        self, data: Union[ApplicationSubmission, Mapping[str, Any]], client_id: str = "unknown"
    ) -> ActionResult:
        try:
            form = data if isinstance(data, ApplicationSubmission) else ApplicationSubmission.model_validate(dict(data))
        except ValidationError:
            return ActionResult.fail(REQUIRED_FIELDS_MESSAGE)

        if not (form.name.strip() and form.email.strip() and form.phone.strip() and form.role):
            return ActionResult.fail(REQUIRED_FIELDS_MESSAGE)
        try:
            role = ApplicantRole(form.role.strip().upper())
        except ValueError:
            return ActionResult.fail(REQUIRED_FIELDS_MESSAGE)

        limit = await self.rate_limiter.check(
            f"application:{client_id}", self.settings.APPLICATION_RATE_LIMIT, self.settings.APPLICATION_RATE_WINDOW
        )
        if not limit.success:
            return ActionResult.fail(TOO_MANY_APPLICATIONS)

        now = self.clock()
        application_id = uuid4().hex
        doc = _build_document(form, role)
        doc.update({"_id": application_id, "created_at": now, "updated_at": now})
        try:
            await self.collection.insert_one(doc)
        except Exception:
            logger.error("Failed to store application from %s", doc["email"], exc_info=True)
            return ActionResult.fail(SUBMIT_FAILED_MESSAGE)

        logger.info(f"Application {application_id} received for role {role.value}")
        return ActionResult.ok(id=application_id)

    async def list_applications(
        self, actor: Optional[Identity], role: Optional[ApplicantRole] = None
    ) -> List[Application]:
        require_admin(actor)
        query = {"role": ApplicantRole(role).value} if role else {}
        docs = await self.collection.find(query).sort("created_at", -1).to_list(length=None)
        return [Application.from_document(doc) for doc in docs]

    @admin_mutation("Failed to delete application.")
    async def delete_application(self, actor: Identity, application_id: str) -> ActionResult:
        doc = await self.collection.find_one_and_delete({"_id": application_id})
        if doc is None:
            raise NotFoundFailure("Application not found")

        await self.audit.record_for(
            actor,
            AuditAction.APPLICATION_DELETED,
            TargetType.APPLICATION,
            application_id,
            f"Deleted {doc.get('role', 'unknown')} application from {doc.get('email', 'unknown')}",
            {"email": doc.get("email"), "role": doc.get("role")},
        )
        return ActionResult.ok(revalidate=APPLICATION_PATHS)
