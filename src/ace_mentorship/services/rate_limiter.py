"""
# Rate Limiter

Fixed-window counters stored in the `rate_limits` collection, one document per key
(`_id` = key, e.g. `"session_sync:203.0.113.7"`).

## Window Semantics

- No bucket, or the bucket's `reset_at` has passed: a new window starts with `count=0` and
  `reset_at = now + window`, then the call is counted like any other.
- A call is allowed while `count < limit`; the allowed call bumps `count` and gets
  `remaining = limit - count`.
- Otherwise the call is refused with `remaining=0`; `count` is left unchanged and only
  `rejected_count` is bumped for diagnostics.

Each step is a single-document conditional update, so concurrent callers on one key never
overshoot the limit, with or without a document store transaction around them:

1. `$setOnInsert` upsert on `_id` creates the bucket if missing.
2. `{"reset_at": {"$lt": now}}` conditional `$set` reopens an expired window; only one caller
   can match it.
3. `{"count": {"$lt": limit}}` conditional `$inc` consumes a slot.

## Failure Policy

With `RATE_LIMIT_FAIL_OPEN=True` any storage error resolves to `success=True, remaining=1`:
availability wins over strict enforcement for this subsystem. With the flag off the error
propagates.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo import ReturnDocument

from ace_mentorship.config import Settings
from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.rate_limit import RateLimitResult
from ace_mentorship.utils.week import utc_now

logger = get_logger(prefix="[RateLimiter]")

FAIL_OPEN_REMAINING = 1


def _aware(moment: Optional[datetime]) -> Optional[datetime]:
    if moment is None:
        return None
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


class RateLimiter:
    def __init__(self, db_manager: DatabaseManager, settings: Settings, clock: Callable[[], datetime] = utc_now):
        self.db_manager = db_manager
        self.settings = settings
        self.clock = clock
        self.collection_name = "rate_limits"

    async def check(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        async def _consume(session: Optional[AsyncIOMotorClientSession]) -> RateLimitResult:
            collection = self.db_manager.get_collection(self.collection_name)
            now = self.clock()
            fresh_window = {
                "count": 0,
                "reset_at": now + timedelta(seconds=window_seconds),
                "rejected_count": 0,
                "updated_at": now,
            }

            await collection.update_one(
                {"_id": key}, {"$setOnInsert": fresh_window}, upsert=True, session=session
            )
            await collection.update_one(
                {"_id": key, "reset_at": {"$lt": now}}, {"$set": fresh_window}, session=session
            )

            bucket = await collection.find_one_and_update(
                {"_id": key, "count": {"$lt": limit}},
                {"$inc": {"count": 1}, "$set": {"updated_at": now}},
                return_document=ReturnDocument.AFTER,
                session=session,
            )
            if bucket is not None:
                return RateLimitResult(
                    success=True, remaining=max(limit - bucket["count"], 0), reset_at=_aware(bucket["reset_at"])
                )

            bucket = await collection.find_one_and_update(
                {"_id": key},
                {"$inc": {"rejected_count": 1}, "$set": {"updated_at": now}},
                return_document=ReturnDocument.AFTER,
                session=session,
            )
            logger.warning(f"Rate limit exceeded for {key} ({limit}/{window_seconds}s)")
            return RateLimitResult(success=False, remaining=0, reset_at=_aware((bucket or {}).get("reset_at")))

        try:
            return await self.db_manager.run_transaction(_consume)
        except Exception:
            if not self.settings.RATE_LIMIT_FAIL_OPEN:
                raise
            logger.error("Rate limit check failed for %s; failing open", key, exc_info=True)
            return RateLimitResult(success=True, remaining=FAIL_OPEN_REMAINING)
