"""Dashboard counters."""

from pydantic import BaseModel, Field


class AdminStats(BaseModel):
    total_users: int = 0
    total_families: int = 0
    total_pairings: int = 0
    pending_submissions: int = 0
    total_announcements: int = 0
    active_bonuses: int = 0
    points_this_week: int = Field(0, description="Points from submissions approved for the current week")
    approved_this_week: int = 0
    week_number: int = 0
    year: int = 0


class UserStats(BaseModel):
    total_points: int = 0
    total_submissions: int = 0
    submitted_weeks: int = Field(0, description="Distinct (year, week) pairs with a submission")
