"""
# Identity Models

A resolved, authenticated user record with a role. Identities are owned by the relational store
and mirrored into the document store's `users` collection.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    ADMIN = "ADMIN"
    MENTOR = "MENTOR"
    MENTEE = "MENTEE"


class Identity(BaseModel):
    """The verified caller of a request, re-resolved on every call."""

    id: str = Field(..., description="Local identity id")
    email: str = Field(..., description="Primary email address")
    name: str = Field("", description="Display name")
    role: Role = Field(Role.MENTEE, description="Authorization role")
    family_id: Optional[str] = Field(None, description="Family the identity belongs to, if any")
    avatar_url: Optional[str] = Field(None, description="Profile image URL")
    external_uid: Optional[str] = Field(None, description="Identity provider subject")

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class VerifiedToken(BaseModel):
    """Claims the identity provider vouches for."""

    subject: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    claims: dict = Field(default_factory=dict)


class UserWithFamily(Identity):
    """Admin user listing row."""

    family_name: Optional[str] = None


class UserProfile(BaseModel):
    """Dashboard view of the signed-in identity."""

    identity: Identity
    family: Optional[dict] = None
    pairing: Optional[dict] = None
