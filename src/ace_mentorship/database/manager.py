"""
# Document Store Manager

Owns the Motor client for the **document store**. Pairing point totals, submissions,
announcements, bonus activities, families, audit logs, rate-limit buckets and the identity
mirror all live here.

## Lifecycle

The `ServiceContainer` builds one `DatabaseManager` per process and hands it to every service
that needs a collection. There is no module-level handle.

```python
manager = DatabaseManager(settings)
await manager.connect()
points = manager.get_collection("pairing_points")
...
await manager.disconnect()
```
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional, TypeVar

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from ace_mentorship.config import Settings
from ace_mentorship.managers.logging_manager import get_logger

logger = get_logger(prefix="[DOCUMENT_STORE]")

T = TypeVar("T")

CONNECT_ATTEMPTS = 3


class DatabaseManager:
    """
    Connection and transaction manager for the document store.

    Attributes:
        client: Motor client, `None` until `connect()` succeeds.
        database: Selected database, `None` until `connect()` succeeds.
        transactions_supported: Set after connecting; `True` for replica sets and mongos.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.transactions_supported: Optional[bool] = None

    def _uri(self) -> str:
        settings = self.settings
        if not (settings.MONGODB_USERNAME and settings.MONGODB_PASSWORD):
            return settings.MONGODB_URL
        host = settings.MONGODB_URL.removeprefix("mongodb://")
        password = settings.MONGODB_PASSWORD.get_secret_value()
        return f"mongodb://{settings.MONGODB_USERNAME}:{password}@{host}"

    async def _open(self) -> float:
        """Create the client and ping it; returns the ping round-trip in seconds."""
        self.client = AsyncIOMotorClient(
            self._uri(),
            serverSelectionTimeoutMS=self.settings.MONGODB_SERVER_SELECTION_TIMEOUT,
            connectTimeoutMS=self.settings.MONGODB_CONNECTION_TIMEOUT,
            maxPoolSize=50,
            minPoolSize=5,
            tz_aware=True,
        )
        self.database = self.client[self.settings.MONGODB_DATABASE]
        sent = time.monotonic()
        await self.client.admin.command("ping")
        return time.monotonic() - sent

    async def _detect_transactions(self) -> bool:
        try:
            hello = await self.client.admin.command({"hello": 1})
        except PyMongoError:
            return False
        return bool(hello.get("setName") or hello.get("msg") == "isdbgrid")

    async def connect(self):
        """
        Connect to MongoDB, retrying with a doubling delay (1s, then 2s).

        Once the ping succeeds a `hello` command decides whether multi-document transactions
        are available.

        Raises:
            ServerSelectionTimeoutError: Server unreachable on the last attempt.
            ConnectionFailure: Connection refused or rejected on the last attempt.
        """
        for attempt in range(1, CONNECT_ATTEMPTS + 1):
            try:
                ping = await self._open()
            except (ServerSelectionTimeoutError, ConnectionFailure) as e:
                if attempt == CONNECT_ATTEMPTS:
                    logger.error("Giving up on %s after %d attempts: %s", self.settings.MONGODB_DATABASE, attempt, e)
                    raise
                delay = 2 ** (attempt - 1)
                logger.warning("Attempt %d to reach MongoDB failed (%s); next try in %ds", attempt, e, delay)
                await asyncio.sleep(delay)
                continue

            self.transactions_supported = await self._detect_transactions()
            logger.info(
                "Using database %s (ping %.0fms, transactions=%s)",
                self.settings.MONGODB_DATABASE,
                ping * 1000,
                self.transactions_supported,
            )
            return

    async def disconnect(self):
        """Close the Motor client. A no-op when never connected."""
        if self.client is None:
            return
        self.client.close()
        self.client = None
        self.database = None
        logger.info("Document store connection closed")

    async def health_check(self) -> bool:
        """Ping the server; returns `False` instead of raising."""
        if self.client is None:
            return False
        try:
            await self.client.admin.command("ping")
        except PyMongoError as e:
            logger.error("Health ping failed: %s", e)
            return False
        return True

    def get_collection(self, collection_name: str) -> AsyncIOMotorCollection:
        """
        Return a collection handle from the connected database.

        Raises:
            ConnectionError: If `connect()` has not been called.
        """
        if self.database is None:
            raise ConnectionError(f"Document store not connected; cannot open '{collection_name}'")
        return self.database[collection_name]

    async def run_transaction(
        self, callback: Callable[[Optional[AsyncIOMotorClientSession]], Awaitable[T]]
    ) -> T:
        """
        Run `callback(session)` inside a multi-document transaction.

        The callback passes the session to every collection call it makes. Standalone servers
        and test doubles get `session=None` and rely on single-document atomicity.
        """
        if not self.transactions_supported or self.client is None:
            return await callback(None)

        async with await self.client.start_session() as session:
            return await session.with_transaction(callback)
