"""Semester week numbering."""

from datetime import date, datetime, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

DEFAULT_SEMESTER_TIMEZONE = "America/Los_Angeles"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_current_week(
    now: Optional[datetime] = None,
    semester_start: date = date(2026, 1, 1),
    tz_name: str = DEFAULT_SEMESTER_TIMEZONE,
) -> Tuple[int, int]:
    """
    Return `(week_number, year)` for `now` relative to the semester start.

    Week 1 covers the seven calendar days beginning on `semester_start` (in the semester's
    timezone); any moment before the start maps to week 0. The year is the semester's year.
    """
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local_day = now.astimezone(ZoneInfo(tz_name)).date()
    diff_days = (local_day - semester_start).days
    if diff_days < 0:
        return 0, semester_start.year
    return diff_days // 7 + 1, semester_start.year
