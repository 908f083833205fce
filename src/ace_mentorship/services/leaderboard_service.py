"""
# Leaderboards & Stats

Read-only projections over both stores:

- `family_leaderboard()`: non-archived families ranked by the sum of their pairings' points.
- `pairing_leaderboard()`: every pairing ranked by total points, with mentor, mentee and family
  names.
- `admin_stats()`: dashboard counters, including points approved for the current semester week.
- `user_stats()`: the signed-in identity's own submission totals.
"""

from datetime import datetime
from typing import Callable, List, Optional

from ace_mentorship.config import Settings
from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.database.repositories import PairingRepository, UserRepository
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.family import FamilyStanding
from ace_mentorship.models.identity import Identity
from ace_mentorship.models.media import SubmissionStatus
from ace_mentorship.models.pairing import PairingStanding
from ace_mentorship.models.stats import AdminStats, UserStats
from ace_mentorship.services.authorization import require_admin, require_auth
from ace_mentorship.services.family_service import FamilyService
from ace_mentorship.services.points_service import PointsService
from ace_mentorship.utils.week import get_current_week, utc_now

logger = get_logger(prefix="[LeaderboardService]")


class LeaderboardService:
    def __init__(
        self,
        db_manager: DatabaseManager,
        users: UserRepository,
        pairings: PairingRepository,
        families: FamilyService,
        points: PointsService,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db_manager = db_manager
        self.users = users
        self.pairings = pairings
        self.families = families
        self.points = points
        self.settings = settings
        self.clock = clock

    async def family_leaderboard(self) -> List[FamilyStanding]:
        docs = await self.db_manager.get_collection("families").find(
            {"is_archived": {"$ne": True}}
        ).to_list(length=None)
        views = await self.families.build_views(docs)
        standings = [
            FamilyStanding(
                id=view.id,
                name=view.name,
                total_points=view.total_points,
                weekly_points=view.weekly_points,
                member_count=view.member_count,
            )
            for view in views
        ]
        return sorted(standings, key=lambda s: s.total_points, reverse=True)

    async def pairing_leaderboard(self) -> List[PairingStanding]:
        return await self.points.pairing_standings()

    async def admin_stats(self, actor: Optional[Identity]) -> AdminStats:
        require_admin(actor)
        week_number, year = get_current_week(
            self.clock(), self.settings.SEMESTER_START_DATE, self.settings.SEMESTER_TIMEZONE
        )
        submissions = self.db_manager.get_collection("submissions")

        approved = await submissions.find(
            {"status": SubmissionStatus.APPROVED.value, "week_number": week_number, "year": year},
            {"total_points": 1},
        ).to_list(length=None)

        return AdminStats(
            total_users=await self.users.count(),
            total_families=await self.db_manager.get_collection("families").count_documents({}),
            total_pairings=await self.pairings.count(),
            pending_submissions=await submissions.count_documents({"status": SubmissionStatus.PENDING.value}),
            total_announcements=await self.db_manager.get_collection("announcements").count_documents({}),
            active_bonuses=await self.db_manager.get_collection("bonus_activities").count_documents({"is_active": True}),
            points_this_week=sum(doc.get("total_points", 0) for doc in approved),
            approved_this_week=len(approved),
            week_number=week_number,
            year=year,
        )

    async def user_stats(self, actor: Optional[Identity]) -> UserStats:
        identity = require_auth(actor)
        stats = UserStats()
        weeks = set()
        async for doc in self.db_manager.get_collection("submissions").find(
            {"submitter_id": identity.id}, {"total_points": 1, "week_number": 1, "year": 1}
        ):
            stats.total_submissions += 1
            stats.total_points += doc.get("total_points", 0)
            weeks.add((doc.get("year"), doc.get("week_number")))
        stats.submitted_weeks = len(weeks)
        return stats
