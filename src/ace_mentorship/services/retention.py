"""
# Retention Policy

Pure functions deciding when archived media may be permanently deleted. The media library
countdown and the delete gate both call these, so what admins see and what is enforced cannot
drift apart.

A submission becomes eligible once `floor(days since archived_at) >= retention_days`.
"""

from datetime import datetime, timezone
from typing import Optional

DEFAULT_RETENTION_DAYS = 30
SECONDS_PER_DAY = 24 * 60 * 60


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


def days_since(moment: datetime, now: datetime) -> int:
    """Whole days elapsed from `moment` to `now` (floored, never negative)."""
    elapsed = (_aware(now) - _aware(moment)).total_seconds()
    return max(int(elapsed // SECONDS_PER_DAY), 0)


def eligible_for_deletion(
    archived_at: Optional[datetime], now: datetime, retention_days: int = DEFAULT_RETENTION_DAYS
) -> bool:
    return archived_at is not None and days_since(archived_at, now) >= retention_days


def days_until_deletable(
    archived_at: Optional[datetime], now: datetime, retention_days: int = DEFAULT_RETENTION_DAYS
) -> Optional[int]:
    """Days left before deletion is allowed; `None` when the item is not archived."""
    if archived_at is None:
        return None
    return max(retention_days - days_since(archived_at, now), 0)
