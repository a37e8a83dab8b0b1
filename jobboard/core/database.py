"""Job board document storage on MongoDB.

Services talk to ``Database``/``DocumentCollection``; ``MongoDatabase`` backs
them with a motor client. Any motor-compatible client works, which is how the
tests run against an in-process mock server.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from jobboard.core.config import Settings

logger = logging.getLogger(__name__)

ACCOUNTS = "accounts"
JOBS = "jobs"
APPLICATIONS = "applications"


@dataclass(frozen=True)
class DocumentQuery:
    """A composed read query that has not been executed yet."""

    filter: dict[str, Any] = field(default_factory=dict)
    sort: list[tuple[str, int]] = field(default_factory=list)
    projection: dict[str, int] | None = None
    skip: int = 0
    limit: int = 0


class DocumentCollection(ABC):
    """The storage operations the services issue against one collection."""

    @abstractmethod
    async def find(self, query: DocumentQuery) -> list[dict[str, Any]]: ...

    @abstractmethod
    async def count(self, query_filter: dict[str, Any]) -> int: ...

    @abstractmethod
    async def find_one(
        self,
        query_filter: dict[str, Any],
        projection: dict[str, int] | None = None,
    ) -> dict[str, Any] | None: ...

    @abstractmethod
    async def insert_one(self, document: dict[str, Any]) -> None: ...

    @abstractmethod
    async def update_one(self, query_filter: dict[str, Any], update: dict[str, Any]) -> bool:
        """Apply an update to the first match. Returns False if nothing matched."""

    @abstractmethod
    async def delete_one(self, query_filter: dict[str, Any]) -> bool: ...


class Database(ABC):
    """A group of named collections."""

    @abstractmethod
    def collection(self, name: str) -> DocumentCollection: ...

    @abstractmethod
    async def ping(self) -> bool: ...

    async def ensure_indexes(self) -> None:
        return None

    async def close(self) -> None:
        return None


class MongoCollection(DocumentCollection):
    def __init__(self, collection: Any):
        self._collection = collection

    async def find(self, query: DocumentQuery) -> list[dict[str, Any]]:
        cursor = self._collection.find(
            query.filter,
            query.projection,
            sort=query.sort or None,
            skip=query.skip,
            limit=query.limit,
        )
        return await cursor.to_list(length=None)

    async def count(self, query_filter: dict[str, Any]) -> int:
        return await self._collection.count_documents(query_filter)

    async def find_one(
        self,
        query_filter: dict[str, Any],
        projection: dict[str, int] | None = None,
    ) -> dict[str, Any] | None:
        return await self._collection.find_one(query_filter, projection)

    async def insert_one(self, document: dict[str, Any]) -> None:
        await self._collection.insert_one(document)

    async def update_one(self, query_filter: dict[str, Any], update: dict[str, Any]) -> bool:
        result = await self._collection.update_one(query_filter, update)
        return result.matched_count > 0

    async def delete_one(self, query_filter: dict[str, Any]) -> bool:
        result = await self._collection.delete_one(query_filter)
        return result.deleted_count > 0


class MongoDatabase(Database):
    """One MongoDB database. The client connects lazily on first use."""

    def __init__(self, client: Any, db_name: str):
        self.client = client
        self.db = client[db_name]

    @classmethod
    def from_uri(cls, uri: str, db_name: str, timeout_ms: int = 5000) -> "MongoDatabase":
        client = AsyncIOMotorClient(
            uri,
            tz_aware=True,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
        )
        return cls(client, db_name)

    def collection(self, name: str) -> DocumentCollection:
        return MongoCollection(self.db[name])

    async def ensure_indexes(self) -> None:
        await self.db[ACCOUNTS].create_index("email", unique=True)
        await self.db[JOBS].create_index([("status", 1), ("createdAt", -1)])
        await self.db[JOBS].create_index("postedBy")
        await self.db[APPLICATIONS].create_index([("job", 1), ("applicant", 1)])

    async def ping(self) -> bool:
        try:
            await self.db.command("ping")
            return True
        except PyMongoError as e:
            logger.debug(f"Database ping failed: {e}")
            return False

    async def close(self) -> None:
        self.client.close()


def create_database(settings: Settings) -> Database:
    """Build the database from configuration."""
    logger.info(f"Using MongoDB database '{settings.mongodb_db}'")
    return MongoDatabase.from_uri(
        settings.mongodb_uri,
        settings.mongodb_db,
        timeout_ms=settings.mongodb_timeout_ms,
    )


def get_db(request: Request) -> Database:
    """Dependency to get the application's database."""
    return request.app.state.database


async def check_db_connection(database: Database) -> bool:
    """Check if database is reachable."""
    try:
        return await database.ping()
    except (OSError, ConnectionError) as e:
        logger.debug(f"Database connection check failed: {e}")
        return False
