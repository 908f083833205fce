"""Request bodies for the session endpoints."""

from typing import Optional

from pydantic import BaseModel, Field


class SessionSyncRequest(BaseModel):
    id_token: str = Field(..., description="ID token issued by the identity provider")


class SignUpRequest(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = None
    avatar_url: Optional[str] = None
