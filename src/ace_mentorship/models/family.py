"""
# Family Models

Families are document-store records. Membership is never stored: `member_count` is projected on
read from the family's heads, aunts/uncles and the participants of its pairings. Point totals are
likewise summed from the family's pairings.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FamilyView(BaseModel):
    id: str
    name: str
    is_archived: bool = False
    family_head_ids: List[str] = Field(default_factory=list)
    aunt_uncle_ids: List[str] = Field(default_factory=list)
    head_names: List[str] = Field(default_factory=list)
    aunt_uncle_names: List[str] = Field(default_factory=list)
    member_count: int = 0
    total_points: int = 0
    weekly_points: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FamilyStanding(BaseModel):
    id: str
    name: str
    total_points: int = 0
    weekly_points: int = 0
    member_count: int = 0


class FamilyUpdate(BaseModel):
    """
    Partial family update.

    `family_head_id` is the legacy single-head field; it is only honoured when
    `family_head_ids` is absent, and the stored document never keeps it.
    """

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    is_archived: Optional[bool] = None
    family_head_ids: Optional[List[str]] = None
    aunt_uncle_ids: Optional[List[str]] = None
    family_head_id: Optional[str] = None
