"""
# Service Container

Explicitly constructed dependency graph for one process. The FastAPI lifespan and the admin CLI
build a `ServiceContainer` from `Settings`, call `start()` before serving and `stop()` on shutdown.
Routes reach services through `request.app.state.container`.

```
Settings
 ├── DatabaseManager (document store)      ├── IdentityProvider (httpx)
 ├── RelationalDatabase (SQLAlchemy)       └── BlobStore (httpx)
 │    ├── UserRepository
 │    └── PairingRepository
 └── services: audit, rate limiter, points, media, families, pairings, imports,
               announcements, bonuses, applications, submissions, users, sessions,
               leaderboards
```
"""

from datetime import datetime
from typing import Callable, Optional

from ace_mentorship.config import Settings
from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.database.relational import RelationalDatabase
from ace_mentorship.database.repositories import PairingRepository, UserRepository
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.services.application_service import ApplicationService
from ace_mentorship.services.announcement_service import AnnouncementService
from ace_mentorship.services.audit_service import AuditTrail
from ace_mentorship.services.authorization import IdentityVerifier
from ace_mentorship.services.blob_storage import BlobStore
from ace_mentorship.services.bonus_service import BonusService
from ace_mentorship.services.family_service import FamilyService
from ace_mentorship.services.identity_provider import IdentityProvider
from ace_mentorship.services.import_service import ImportService
from ace_mentorship.services.leaderboard_service import LeaderboardService
from ace_mentorship.services.media_service import MediaService
from ace_mentorship.services.pairing_service import PairingService
from ace_mentorship.services.points_service import PairingPointsStore, PointsService
from ace_mentorship.services.rate_limiter import RateLimiter
from ace_mentorship.services.session_service import SessionService
from ace_mentorship.services.submission_service import SubmissionService
from ace_mentorship.services.user_mirror import UserMirror
from ace_mentorship.services.user_service import UserService
from ace_mentorship.utils.week import utc_now

logger = get_logger(prefix="[ServiceContainer]")


class ServiceContainer:
    def __init__(
        self,
        settings: Settings,
        db_manager: Optional[DatabaseManager] = None,
        relational: Optional[RelationalDatabase] = None,
        identity_provider: Optional[IdentityProvider] = None,
        blob_store: Optional[BlobStore] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings
        self.db_manager = db_manager or DatabaseManager(settings)
        self.relational = relational or RelationalDatabase(settings)
        self.identity_provider = identity_provider or IdentityProvider(settings)
        self.blob_store = blob_store or BlobStore(settings)

        self.users = UserRepository(self.relational)
        self.pairing_repository = PairingRepository(self.relational)

        self.audit = AuditTrail(self.db_manager, settings, clock)
        self.rate_limiter = RateLimiter(self.db_manager, settings, clock)
        self.mirror = UserMirror(self.db_manager, clock)
        self.pairing_points = PairingPointsStore(self.db_manager, clock)
        self.verifier = IdentityVerifier(self.identity_provider, self.users)

        self.points = PointsService(self.pairing_points, self.pairing_repository, self.audit, self.db_manager)
        self.media = MediaService(self.db_manager, self.blob_store, self.users, self.audit, settings, clock)
        self.families = FamilyService(
            self.db_manager, self.pairing_repository, self.users, self.pairing_points, self.audit, clock
        )
        self.pairings = PairingService(
            self.pairing_repository, self.users, self.mirror, self.pairing_points, self.audit, self.db_manager, settings
        )
        self.imports = ImportService(
            self.users,
            self.pairing_repository,
            self.mirror,
            self.pairing_points,
            self.rate_limiter,
            self.audit,
            self.db_manager,
            settings,
        )
        self.announcements = AnnouncementService(self.db_manager, self.audit, clock)
        self.bonuses = BonusService(self.db_manager, self.audit, clock)
        self.applications = ApplicationService(self.db_manager, self.audit, self.rate_limiter, settings, clock)
        self.submissions = SubmissionService(
            self.db_manager,
            self.pairing_repository,
            self.bonuses,
            self.pairing_points,
            self.blob_store,
            self.audit,
            settings,
            clock,
        )
        self.user_service = UserService(
            self.users, self.pairing_repository, self.mirror, self.identity_provider, self.audit, self.db_manager
        )
        self.sessions = SessionService(self.identity_provider, self.users, self.mirror, self.rate_limiter, settings)
        self.leaderboards = LeaderboardService(
            self.db_manager, self.users, self.pairing_repository, self.families, self.points, settings, clock
        )

    async def start(self) -> None:
        logger.info("Starting service container")
        await self.db_manager.connect()
        self.relational.initialize()

    async def stop(self) -> None:
        logger.info("Stopping service container")
        try:
            await self.identity_provider.close()
            await self.blob_store.close()
        finally:
            await self.relational.shutdown()
            await self.db_manager.disconnect()
