"""
# Relational Store

Async SQLAlchemy engine and session management for the relational store (identities, pairings,
pairing mentees).

## Transaction Model

- `get_transaction()` is the interface for every write: commit on success, rollback and re-raise
  on any exception.
- `get_session()` is for reads; it never commits.

```python
async with relational.get_transaction() as session:
    session.add(UserRow(email="a@example.com", name="A"))
```

The store is not transactionally linked to the document store. Services that touch both write
the authoritative store first and treat a failure of the second write as a logged inconsistency.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ace_mentorship.config import Settings
from ace_mentorship.database.tables import Base
from ace_mentorship.managers.logging_manager import get_logger

logger = get_logger(prefix="[RelationalStore]")


class DatabaseNotInitializedError(RuntimeError):
    """Raised when a session is requested before `initialize()`."""


class RelationalDatabase:
    """Owns one `AsyncEngine` and its session factory."""

    def __init__(self, settings: Settings, url: Optional[str] = None):
        self.settings = settings
        self.url = url or settings.DATABASE_URL
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise DatabaseNotInitializedError("RelationalDatabase.initialize() has not been called")
        return self._engine

    def initialize(self) -> None:
        """Create the engine and session factory. Idempotent."""
        if self._engine is not None:
            return
        engine_kwargs = {"echo": self.settings.DATABASE_ECHO, "pool_pre_ping": True}
        if not self.url.startswith("sqlite"):
            engine_kwargs["pool_size"] = self.settings.DATABASE_POOL_SIZE
            engine_kwargs["max_overflow"] = self.settings.DATABASE_MAX_OVERFLOW
        self._engine = create_async_engine(self.url, **engine_kwargs)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)
        logger.info("Relational engine initialized (%s)", self.url.split(":", 1)[0])

    async def shutdown(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Relational engine disposed")

    async def create_all(self) -> None:
        """Create any missing tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Relational schema ensured")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._session_factory is None:
            raise DatabaseNotInitializedError("RelationalDatabase.initialize() has not been called")
        async with self._session_factory() as session:
            yield session

    @asynccontextmanager
    async def get_transaction(self) -> AsyncGenerator[AsyncSession, None]:
        if self._session_factory is None:
            raise DatabaseNotInitializedError("RelationalDatabase.initialize() has not been called")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                logger.warning("Relational transaction rolled back", exc_info=True)
                raise

    async def health_check(self) -> bool:
        try:
            async with self.get_session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, DatabaseNotInitializedError) as e:
            logger.error("Relational health check failed: %s", e)
            return False
