import asyncio
import logging
from typing import Optional

from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from app.config.setting import settings

load_dotenv()

logger = logging.getLogger(__name__)

MAX_POOL_SIZE = 10
SERVER_SELECTION_TIMEOUT_MS = 5000
SOCKET_TIMEOUT_MS = 45000

FINANCIAL_RECORDS_COLLECTION = "financialrecords"


class DatabaseConnectionError(ConnectionError):
    """Raised when the document store cannot be reached."""


class MongoDB:
    """Lazily connects to MongoDB once and hands the same database out afterwards.

    Concurrent first callers all await the same in-flight connection attempt,
    so they succeed or fail together. A failed attempt leaves the cache empty
    so a later call retries.
    """

    def __init__(self, uri: str, db_name: str):
        self.uri = uri
        self.db_name = db_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None
        self._connecting: Optional[asyncio.Task] = None

    @property
    def is_connected(self) -> bool:
        return self.db is not None

    async def ensure_connection(self) -> AsyncIOMotorDatabase:
        if self.db is not None:
            logger.debug("Using cached database connection")
            return self.db

        if self._connecting is None:
            self._connecting = asyncio.ensure_future(self._connect())
        attempt = self._connecting
        try:
            # shielded so one cancelled request does not cancel the shared attempt
            return await asyncio.shield(attempt)
        finally:
            if attempt.done() and self._connecting is attempt:
                self._connecting = None

    async def _connect(self) -> AsyncIOMotorDatabase:
        logger.info("Connecting to database...")
        client = AsyncIOMotorClient(
            self.uri,
            maxPoolSize=MAX_POOL_SIZE,
            serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS,
            socketTimeoutMS=SOCKET_TIMEOUT_MS,
        )
        try:
            await client.admin.command("ping")
        except Exception as e:
            logger.error(f"Database connection failed: {e}")
            client.close()
            raise DatabaseConnectionError(f"Database connection failed: {e}") from e

        self.client = client
        self.db = client[self.db_name]
        logger.info(f"Database connected: {self.db_name}")
        return self.db

    async def ensure_indexes(self):
        db = await self.ensure_connection()
        collection = db[FINANCIAL_RECORDS_COLLECTION]
        await collection.create_index([("recordDate", DESCENDING), ("createdAt", DESCENDING)])
        await collection.create_index([("recordType", ASCENDING)])
        await collection.create_index([("location", ASCENDING)])
        await collection.create_index([("memberName", ASCENDING)])
        logger.info(f"Indexes ensured on '{FINANCIAL_RECORDS_COLLECTION}'")

    def get_db(self) -> Optional[AsyncIOMotorDatabase]:
        return self.db

    def close(self):
        if self.client is not None:
            self.client.close()
        self.client = None
        self.db = None


mongodb = MongoDB(uri=settings.mongo_uri, db_name=settings.mongo_db_name)
