"""
# User Service

Admin user management and self-service profile edits.

Identities are owned by the relational store. Every write here goes relational first, then the
document-store mirror (`UserMirror`, best effort). Deleting a user additionally removes the
identity provider account, also best effort: a provider failure is logged and the deletion still
reports success because the local identity is already gone.

`export_users_csv` renders the admin user list as CSV (`name,email,role,family,created_at`, ordered
by name, creation date as `YYYY-MM-DD`).
"""

import csv
import io
from typing import Dict, List, Optional

from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.database.repositories import PairingRepository, UserRepository
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.audit import AuditAction, TargetType
from ace_mentorship.models.identity import Identity, Role, UserProfile, UserWithFamily
from ace_mentorship.models.results import ActionResult
from ace_mentorship.services.audit_service import AuditTrail
from ace_mentorship.services.authorization import require_admin, require_auth
from ace_mentorship.services.identity_provider import IdentityProvider
from ace_mentorship.services.mutation_pipeline import (
    NotFoundFailure,
    ValidationFailure,
    admin_mutation,
    authenticated_mutation,
)
from ace_mentorship.services.user_mirror import UserMirror

logger = get_logger(prefix="[UserService]")

USER_PATHS = ["/admin/users"]
PROFILE_PATHS = ["/profile", "/dashboard"]
MAX_NAME_LENGTH = 100
EXPORT_COLUMNS = ["name", "email", "role", "family", "created_at"]


class UserService:
    def __init__(
        self,
        users: UserRepository,
        pairings: PairingRepository,
        mirror: UserMirror,
        identity_provider: IdentityProvider,
        audit: AuditTrail,
        db_manager: DatabaseManager,
    ):
        self.users = users
        self.pairings = pairings
        self.mirror = mirror
        self.identity_provider = identity_provider
        self.audit = audit
        self.db_manager = db_manager

    @admin_mutation("Failed to update role")
    async def update_user_role(self, actor: Identity, user_id: str, role: str) -> ActionResult:
        try:
            new_role = Role(str(role).upper())
        except ValueError:
            raise ValidationFailure(f"Invalid role: {role}")

        current = await self.users.get_by_id(user_id)
        if current is None:
            raise NotFoundFailure("User not found")

        await self.users.update_role(user_id, new_role)
        await self.mirror.update_fields(user_id, role=new_role.value)
        await self.audit.record_for(
            actor,
            AuditAction.USER_ROLE_UPDATED,
            TargetType.USER,
            user_id,
            f"Role changed from {current.role.value} to {new_role.value}",
            {"previous_role": current.role.value, "new_role": new_role.value},
        )
        return ActionResult.ok(revalidate=USER_PATHS)

    @admin_mutation("Failed to delete user")
    async def delete_user(self, actor: Identity, user_id: str) -> ActionResult:
        if user_id == actor.id:
            raise ValidationFailure("You cannot delete your own account")
        current = await self.users.get_by_id(user_id)
        if current is None:
            raise NotFoundFailure("User not found")
        if await self.pairings.find_for_member(user_id) is not None:
            raise ValidationFailure("Remove the user from their pairing before deleting")

        await self.users.delete(user_id)
        await self.mirror.delete(user_id)
        provider_deleted = False
        if current.external_uid:
            provider_deleted = await self.identity_provider.delete_user(current.external_uid)
            if not provider_deleted:
                logger.warning(f"Provider account for deleted user {user_id} was not removed")

        await self.audit.record_for(
            actor,
            AuditAction.USER_DELETED,
            TargetType.USER,
            user_id,
            f"Deleted user {current.email}",
            {"email": current.email, "provider_account_deleted": provider_deleted},
        )
        return ActionResult.ok(revalidate=USER_PATHS)

    @authenticated_mutation("Failed to update profile")
    async def update_own_profile(
        self, actor: Identity, name: Optional[str] = None, avatar_url: Optional[str] = None
    ) -> ActionResult:
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationFailure("Name is required")
            if len(name) > MAX_NAME_LENGTH:
                raise ValidationFailure(f"Name must be at most {MAX_NAME_LENGTH} characters")
        if name is None and avatar_url is None:
            raise ValidationFailure("No valid fields to update")

        updated = await self.users.update_profile(actor.id, name=name, avatar_url=avatar_url)
        if updated is None:
            raise NotFoundFailure("User not found")
        await self.mirror.update_fields(actor.id, name=updated.name, avatar_url=updated.avatar_url)
        return ActionResult.ok(revalidate=PROFILE_PATHS)

    async def _family_names(self) -> Dict[str, str]:
        families = await self.db_manager.get_collection("families").find({}, {"name": 1}).to_list(length=None)
        return {doc["_id"]: doc.get("name", "") for doc in families}

    async def list_users(self, actor: Optional[Identity]) -> List[UserWithFamily]:
        require_admin(actor)
        identities = await self.users.list_all()
        names = await self._family_names()
        return [
            UserWithFamily(**identity.model_dump(), family_name=names.get(identity.family_id) if identity.family_id else None)
            for identity in identities
        ]

    async def get_profile(self, actor: Optional[Identity]) -> UserProfile:
        """The caller's own identity with family and pairing summary."""
        identity = require_auth(actor)
        family = None
        if identity.family_id:
            doc = await self.db_manager.get_collection("families").find_one({"_id": identity.family_id})
            if doc:
                family = {"id": doc["_id"], "name": doc.get("name", "")}

        pairing = None
        record = await self.pairings.find_for_member(identity.id)
        if record is not None:
            people = {p.id: p.name for p in await self.users.get_many(record.member_ids)}
            pairing = {
                "id": record.id,
                "family_id": record.family_id,
                "mentor_id": record.mentor_id,
                "mentor_name": people.get(record.mentor_id, "Unknown"),
                "mentees": [people.get(m, "Unknown") for m in record.mentee_ids],
            }
        return UserProfile(identity=identity, family=family, pairing=pairing)

    @admin_mutation("Failed to export users")
    async def export_users_csv(self, actor: Identity) -> ActionResult:
        """All users ordered by name as `name,email,role,family,created_at` rows."""
        identities = await self.users.list_all()
        created = await self.users.created_dates()
        names = await self._family_names()

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(EXPORT_COLUMNS)
        for identity in identities:
            created_at = created.get(identity.id)
            writer.writerow(
                [
                    identity.name,
                    identity.email,
                    identity.role.value,
                    names.get(identity.family_id, "") if identity.family_id else "",
                    created_at.date().isoformat() if created_at else "",
                ]
            )
        logger.info(f"Exported {len(identities)} users to CSV")
        return ActionResult.ok(data=buffer.getvalue())
