"""
# Membership Application Models

Public applications to join the program. Applicants are not signed in; admins read and delete
the stored applications.

Family head applicants answer the `family_head_*` questions; every other role answers the
pairing questions (`goals` through `core_identities`). Only the answers for the applicant's
role are stored.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_UNIVERSITY = "University of Minnesota - Twin Cities"


class ApplicantRole(str, Enum):
    FAMILY_HEAD = "FAMILY_HEAD"
    ANH = "ANH"
    CHI = "CHI"
    CHANH = "CHANH"
    EM = "EM"


FAMILY_HEAD_FIELDS = (
    "family_head_why",
    "family_head_how_help",
    "family_head_exclusions",
    "family_head_identities",
    "family_head_family_prefs",
    "family_head_concerns",
)

PAIRING_TEXT_FIELDS = (
    "goals",
    "preferred_activities_other",
    "family_head_preference",
    "pairing_preferences",
    "pairing_exclusions",
    "other_commitments",
    "core_identities",
)


class ApplicationSubmission(BaseModel):
    """Form payload as the public page sends it. Checks beyond shape happen in the service."""

    model_config = ConfigDict(extra="ignore")

    # Contact
    name: str = ""
    pronouns: str = ""
    email: str = ""
    phone: str = ""
    instagram: str = ""
    # Academic
    university: str = ""
    school_year: str = ""
    majors_minors: str = ""
    lives_on_campus: str = ""
    role: str = ""
    # Family head questions
    family_head_acknowledged: Optional[bool] = None
    family_head_why: str = ""
    family_head_how_help: str = ""
    family_head_exclusions: str = ""
    family_head_identities: str = ""
    family_head_family_prefs: str = ""
    family_head_concerns: str = ""
    # Pairing questions
    goals: str = ""
    willing_multiple: str = ""
    preferred_activities: List[str] = Field(default_factory=list)
    preferred_activities_other: str = ""
    family_head_preference: str = ""
    pairing_preferences: str = ""
    pairing_exclusions: str = ""
    meet_frequency: str = ""
    other_commitments: str = ""
    core_identities: str = ""
    # Personal
    hobbies: str = ""
    music_taste: str = ""
    perfect_day: str = ""
    dream_vacation: str = ""
    intro_extro_scale: Optional[int] = Field(None, description="1 (introvert) to 10 (extrovert)")
    reach_out_style: str = ""
    additional_info: str = ""
    # Final
    available_for_reveal: str = ""
    final_comments: str = ""
    self_intro: str = ""


class Application(ApplicationSubmission):
    """A stored application as admins see it."""

    model_config = ConfigDict(extra="allow")

    id: str
    role: ApplicantRole
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Application":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return cls(**data)
