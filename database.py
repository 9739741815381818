"""
MongoDB connection lifecycle for the vote/bet API.

The service starts listening before the database is reachable. A background
task keeps calling `Database.connect` with exponential backoff until it
succeeds, and request handlers read `Database.status` to decide whether they
can touch the collections.

Status lifecycle: init -> connecting -> ok, or connecting -> error -> connecting.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from config import Settings

logger = logging.getLogger(__name__)

VOTES = "vote"
BETS = "bet"
DEFAULT_DATABASE = "bgmi"


class DatabaseStatus(BaseModel):
    """Snapshot of database reachability. Replaced as a whole, never mutated."""

    model_config = ConfigDict(frozen=True)

    status: Literal["init", "connecting", "ok", "error"] = "init"
    error: Optional[str] = None


def ensure_indexes(db) -> None:
    # unique names back the one-vote / one-bet per name rule
    db[VOTES].create_index([("voterName", ASCENDING)], unique=True)
    db[BETS].create_index([("betterName", ASCENDING)], unique=True)
    db[VOTES].create_index([("timestamp", DESCENDING)])
    db[BETS].create_index([("timestamp", DESCENDING)])


class Database:
    def __init__(self, settings: Settings, client_factory: Callable[..., Any] = MongoClient):
        self.settings = settings
        self._client_factory = client_factory
        self.client = None
        self.db = None
        self.status = DatabaseStatus()

    @property
    def ready(self) -> bool:
        return self.status.status == "ok" and self.db is not None

    def use(self, db) -> None:
        """Attach an already-open database handle and mark it ready."""
        ensure_indexes(db)
        self.db = db
        self.status = DatabaseStatus(status="ok")

    def _database_name(self, client) -> str:
        if self.settings.database_name:
            return self.settings.database_name
        return client.get_default_database(default=DEFAULT_DATABASE).name

    def connect(self) -> None:
        """Single blocking connection attempt. Raises PyMongoError on failure."""
        self.status = DatabaseStatus(status="connecting")
        client = None
        try:
            client = self._client_factory(
                self.settings.mongodb_uri,
                serverSelectionTimeoutMS=self.settings.timeout_ms,
                tz_aware=True,
            )
            client.server_info()
            db = client[self._database_name(client)]
            ensure_indexes(db)
        except PyMongoError as exc:
            if client is not None:
                client.close()
            self.status = DatabaseStatus(status="error", error=str(exc))
            raise
        self.client = client
        self.db = db
        self.status = DatabaseStatus(status="ok")
        logger.info("Connected to MongoDB database %r", db.name)

    async def connect_with_retry(self) -> None:
        """Retry `connect` forever, doubling the delay up to retry_max_sec."""
        delay = self.settings.retry_initial_sec
        attempt = 0
        while True:
            attempt += 1
            logger.info("Connecting to MongoDB (attempt %d)", attempt)
            try:
                await asyncio.to_thread(self.connect)
            except PyMongoError as exc:
                logger.warning("MongoDB connection failed: %s; retrying in %.1fs", exc, delay)
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.settings.retry_max_sec)
            else:
                return

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            logger.info("MongoDB client closed")
        self.client = None
        self.db = None

    # ---------- Document helpers ----------
    def create_document(self, collection_name: str, data: BaseModel) -> str:
        inserted_id = self.db[collection_name].insert_one(data.model_dump()).inserted_id
        return str(inserted_id)

    def get_documents(
        self,
        collection_name: str,
        filter_dict: Optional[Dict[str, Any]] = None,
        projection: Optional[Dict[str, int]] = None,
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
    ) -> List[dict]:
        cursor = self.db[collection_name].find(filter_dict or {}, projection)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)
