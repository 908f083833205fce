"""
# Announcement and Bonus Activity Models

Document-store content managed by admins: announcements shown on the public pages and the catalog
of bonus activities a submission can claim.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt


class Announcement(BaseModel):
    id: str
    title: str
    content: str = ""
    author_id: Optional[str] = None
    author_name: Optional[str] = None
    is_published: bool = False
    is_pinned: bool = False
    published_at: Optional[datetime] = Field(None, description="Set on first publish, cleared on unpublish")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Announcement":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return cls(**data)


class BonusActivity(BaseModel):
    id: str
    name: str
    description: str = ""
    points: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "BonusActivity":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return cls(**data)


class AnnouncementUpdate(BaseModel):
    """Partial announcement update; only the fields a caller sets are applied."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    content: Optional[str] = None
    is_pinned: Optional[bool] = None
    is_published: Optional[bool] = None
    published_at: Optional[datetime] = None


class BonusActivityUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    description: Optional[str] = None
    points: Optional[StrictInt] = None
    is_active: Optional[bool] = None
