from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class RateLimitResult(BaseModel):
    """Outcome of one fixed-window check."""

    success: bool = Field(..., description="Whether the call is within the limit")
    remaining: int = Field(..., ge=0, description="Calls left in the current window")
    reset_at: Optional[datetime] = Field(None, description="When the current window ends")
