"""
# Audit Models

Append-only records of administrative actions. One entry per successful admin mutation; entries
are never updated or deleted by normal flow.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class AuditAction(str, Enum):
    """Administrative action taxonomy."""

    # Points
    POINTS_ADDED = "POINTS_ADDED"
    POINTS_DEDUCTED = "POINTS_DEDUCTED"

    # Media lifecycle
    MEDIA_ARCHIVED = "MEDIA_ARCHIVED"
    MEDIA_RESTORED = "MEDIA_RESTORED"
    MEDIA_DELETED = "MEDIA_DELETED"

    # Submissions
    SUBMISSION_APPROVED = "SUBMISSION_APPROVED"
    SUBMISSION_REJECTED = "SUBMISSION_REJECTED"

    # Families
    FAMILY_CREATED = "FAMILY_CREATED"
    FAMILY_UPDATED = "FAMILY_UPDATED"
    FAMILY_DELETED = "FAMILY_DELETED"

    # Pairings
    PAIRING_CREATED = "PAIRING_CREATED"
    PAIRING_UPDATED = "PAIRING_UPDATED"
    PAIRING_DELETED = "PAIRING_DELETED"
    MENTEE_ADDED = "MENTEE_ADDED"
    MENTEE_REMOVED = "MENTEE_REMOVED"

    # Catalog and content
    BONUS_CREATED = "BONUS_CREATED"
    BONUS_UPDATED = "BONUS_UPDATED"
    BONUS_DELETED = "BONUS_DELETED"
    ANNOUNCEMENT_CREATED = "ANNOUNCEMENT_CREATED"
    ANNOUNCEMENT_UPDATED = "ANNOUNCEMENT_UPDATED"
    ANNOUNCEMENT_DELETED = "ANNOUNCEMENT_DELETED"

    # Users and imports
    USER_ROLE_UPDATED = "USER_ROLE_UPDATED"
    USER_DELETED = "USER_DELETED"
    USERS_IMPORTED = "USERS_IMPORTED"
    PAIRINGS_IMPORTED = "PAIRINGS_IMPORTED"

    # Applications
    APPLICATION_DELETED = "APPLICATION_DELETED"


class TargetType(str, Enum):
    PAIRING = "pairing"
    SUBMISSION = "submission"
    FAMILY = "family"
    BONUS_ACTIVITY = "bonus_activity"
    ANNOUNCEMENT = "announcement"
    USER = "user"
    IMPORT = "import"
    APPLICATION = "application"


class AuditEntry(BaseModel):
    id: str = Field(..., description="Entry id")
    actor_id: str = Field(..., description="Identity that performed the action")
    actor_email: str = Field("Unknown", description="Actor email at the time of the action")
    action: str = Field(..., description="AuditAction value")
    target_type: str = Field(..., description="Kind of entity acted on")
    target_id: str = Field(..., description="Id of the entity acted on")
    details: str = Field("", description="Human readable summary")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Structured context")
    timestamp: datetime = Field(..., description="When the action was recorded")

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "AuditEntry":
        data = dict(doc)
        data["id"] = str(data.pop("_id", data.get("id", "")))
        data["metadata"] = data.get("metadata") or {}
        return cls(**data)


class AuditQuery(BaseModel):
    limit: int = Field(100, ge=1, le=1000, description="Maximum entries to return")
    target_type: Optional[str] = Field(None, description="Filter by target kind")
    target_id: Optional[str] = Field(None, description="Filter by target id (requires target_type)")
    actor_id: Optional[str] = Field(None, description="Filter by actor")
    action: Optional[str] = Field(None, description="Filter by action")
