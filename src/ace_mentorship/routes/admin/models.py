"""
Request bodies for the admin endpoints.

Fields are deliberately permissive (mostly optional) so that validation failures come back as
`ActionResult` messages from the service layer rather than as 422 responses. PATCH endpoints take
the typed partial-update models from `ace_mentorship.models` (`FamilyUpdate`, `AnnouncementUpdate`,
`BonusActivityUpdate`); a wrongly typed field there is a 422.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ace_mentorship.models.imports import PairingImportRow, UserImportRow


class PointsAdjustRequest(BaseModel):
    amount: int = Field(..., description="Signed point change; zero is rejected")
    reason: str = Field("", description="Why the adjustment was made")


class ArchiveMediaRequest(BaseModel):
    reason: Optional[str] = None


class FamilyCreateRequest(BaseModel):
    name: str = ""
    family_head_ids: List[str] = Field(default_factory=list)
    aunt_uncle_ids: List[str] = Field(default_factory=list)


class PairingCreateRequest(BaseModel):
    family_id: Optional[str] = None
    mentor_id: str = ""
    mentee_ids: List[str] = Field(default_factory=list)


class PairingUpdateRequest(BaseModel):
    family_id: Optional[str] = None
    mentor_id: Optional[str] = None
    mentee_ids: Optional[List[str]] = None


class MenteeRequest(BaseModel):
    mentee_id: str


class UserImportRequest(BaseModel):
    rows: List[UserImportRow] = Field(default_factory=list)


class PairingImportRequest(BaseModel):
    rows: List[PairingImportRow] = Field(default_factory=list)


class AnnouncementCreateRequest(BaseModel):
    title: str = ""
    content: str = ""
    is_published: bool = False
    is_pinned: bool = False
    published_at: Optional[datetime] = None


class BonusCreateRequest(BaseModel):
    name: str = ""
    description: str = ""
    points: int = 0


class RejectSubmissionRequest(BaseModel):
    reason: str = ""


class RoleUpdateRequest(BaseModel):
    role: str

