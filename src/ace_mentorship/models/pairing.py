"""
# Pairing Models

A pairing is one mentor plus one or two mentees, optionally placed inside a family. The relational
store owns the membership facts; point totals live in the document store's `pairing_points`.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ace_mentorship.models.identity import Identity


class PairingRecord(BaseModel):
    id: str
    family_id: Optional[str] = None
    mentor_id: str
    mentee_ids: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Populated when loaded with people
    mentor: Optional[Identity] = None
    mentees: List[Identity] = Field(default_factory=list)

    @property
    def member_ids(self) -> List[str]:
        return [self.mentor_id, *self.mentee_ids]


class PairingStanding(BaseModel):
    id: str
    family_id: Optional[str] = None
    family_name: Optional[str] = None
    mentor_id: str
    mentor_name: str = ""
    mentee_names: List[str] = Field(default_factory=list)
    total_points: int = 0
    weekly_points: int = 0
