"""
# Submission / Media Models

Submissions are weekly photo entries from a pairing. The same records form the admin media
library: archived items become eligible for permanent deletion once the retention period has
elapsed since `archived_at`.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SubmissionStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class MediaFilter(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    ARCHIVED = "archived"


class MediaItem(BaseModel):
    """A submission as shown in the media library, with retention countdown fields."""

    id: str
    submitter_id: str
    submitter_name: str = "Unknown"
    pairing_id: Optional[str] = None
    image_url: str = ""
    image_path: Optional[str] = None
    status: SubmissionStatus = SubmissionStatus.PENDING
    week_number: int = 0
    year: int = 0
    total_points: int = 0
    is_archived: bool = False
    archived_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    days_since_created: int = 0
    days_since_archived: Optional[int] = None
    days_until_deletable: Optional[int] = None
    eligible_for_deletion: bool = False


class MediaStats(BaseModel):
    total: int = 0
    active: int = 0
    archived: int = 0
    eligible_for_deletion: int = 0


class UploadedImage(BaseModel):
    url: str = Field(..., description="Public URL of the stored object")
    path: str = Field(..., description="Object path inside the bucket")


class SubmissionCreate(BaseModel):
    image_url: str
    image_path: str
    description: Optional[str] = None
    bonus_activity_ids: List[str] = Field(default_factory=list)


class Submission(BaseModel):
    """A weekly photo submission as stored in the `submissions` collection."""

    id: str
    pairing_id: str
    submitter_id: str
    image_url: str
    image_path: Optional[str] = None
    description: Optional[str] = None
    week_number: int
    year: int
    status: SubmissionStatus = SubmissionStatus.PENDING
    base_points: int = 0
    bonus_points: int = 0
    total_points: int = 0
    bonus_activity_ids: List[str] = Field(default_factory=list)
    reviewer_id: Optional[str] = None
    review_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    is_archived: bool = False
    archived_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: dict) -> "Submission":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return cls(**data)
