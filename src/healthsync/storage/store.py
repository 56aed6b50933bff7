from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

import pymongo
import structlog
from bson.errors import BSONError
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from healthsync.config import Settings, load_settings
from healthsync.errors import PersistenceError
from healthsync.extractors.rules import KIND_SPECS, SUMMARY_COLLECTION
from healthsync.models.metrics import CanonicalRecord, CombinedSummary
from healthsync.utils.time import parse_instant

logger = structlog.get_logger(__name__)

# driver failures plus documents BSON cannot encode (NUL in keys, ints over 8 bytes)
STORE_ERRORS = (PyMongoError, BSONError, OverflowError)


class MetricStore:
    """Persistence boundary used by the ingestion and query services."""

    async def insert_summary(self, summary: CombinedSummary) -> Any:
        raise NotImplementedError("method not implemented")

    async def insert_records(self, collection: str, records: List[CanonicalRecord]) -> List[Any]:
        raise NotImplementedError("method not implemented")

    async def find_latest(
        self, owner_id: str, collection: str, kind: str, filters: Optional[Dict[str, Any]] = None
    ) -> Optional[CanonicalRecord]:
        raise NotImplementedError("method not implemented")

    def iter_range(
        self,
        owner_id: str,
        collection: str,
        kind: str,
        start: datetime,
        end: datetime,
        filters: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[CanonicalRecord]:
        """Every record in ``[start, end]``, oldest first, uncapped."""
        raise NotImplementedError("method not implemented")

    async def find_summaries(self, owner_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        raise NotImplementedError("method not implemented")

    async def latest_summary_timestamp(self, owner_id: str) -> Optional[datetime]:
        raise NotImplementedError("method not implemented")


class MongoMetricStore(MetricStore):
    def __init__(self, settings: Optional[Settings] = None, client: Optional[AsyncIOMotorClient] = None):
        """Initialize database connection"""
        self.settings = settings or load_settings()
        self.client = client or AsyncIOMotorClient(self.settings.mongodb_uri, tz_aware=True)
        self.db = self.client[self.settings.db_name]

    def close(self):
        self.client.close()

    async def ensure_indexes(self):
        collections = {spec.collection for spec in KIND_SPECS} | {SUMMARY_COLLECTION}
        for name in sorted(collections):
            await self.db[name].create_index(
                [("userId", pymongo.ASCENDING), ("timestamp", pymongo.DESCENDING)]
            )
        logger.info("indexes_ensured", collections=len(collections))

    async def insert_summary(self, summary: CombinedSummary) -> Any:
        try:
            result = await self.db[SUMMARY_COLLECTION].insert_one(summary.to_document())
        except STORE_ERRORS as e:
            logger.error("summary_insertion_failed", user_id=summary.owner_id, error=str(e))
            raise PersistenceError(str(e), collection=SUMMARY_COLLECTION) from e
        return result.inserted_id

    async def insert_records(self, collection: str, records: List[CanonicalRecord]) -> List[Any]:
        if not records:
            return []
        documents = [record.to_document() for record in records]
        try:
            result = await self.db[collection].insert_many(documents, ordered=True)
        except STORE_ERRORS as e:
            logger.error(
                "records_insertion_failed", collection=collection, error=str(e), records_count=len(records)
            )
            raise PersistenceError(str(e), collection=collection) from e

        logger.info("records_insertion_completed", collection=collection, inserted_count=len(result.inserted_ids))
        return result.inserted_ids

    async def find_latest(
        self, owner_id: str, collection: str, kind: str, filters: Optional[Dict[str, Any]] = None
    ) -> Optional[CanonicalRecord]:
        query = {"userId": owner_id, **(filters or {})}
        try:
            doc = await self.db[collection].find_one(query, sort=[("timestamp", pymongo.DESCENDING)])
        except STORE_ERRORS as e:
            logger.error("latest_query_failed", collection=collection, error=str(e))
            raise PersistenceError(str(e), collection=collection) from e
        return CanonicalRecord.from_document(kind, doc) if doc else None

    async def iter_range(
        self,
        owner_id: str,
        collection: str,
        kind: str,
        start: datetime,
        end: datetime,
        filters: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[CanonicalRecord]:
        query = {"userId": owner_id, "timestamp": {"$gte": start, "$lte": end}, **(filters or {})}
        logger.debug("executing_query", collection=collection, query=query)
        cursor = (
            self.db[collection]
            .find(query)
            .sort("timestamp", pymongo.ASCENDING)
            .batch_size(self.settings.range_batch_size)
        )
        try:
            async for doc in cursor:
                yield CanonicalRecord.from_document(kind, doc)
        except STORE_ERRORS as e:
            logger.error("range_query_failed", collection=collection, error=str(e))
            raise PersistenceError(str(e), collection=collection) from e

    async def find_summaries(self, owner_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        try:
            cursor = self.db[SUMMARY_COLLECTION].find({"userId": owner_id}).sort("timestamp", pymongo.DESCENDING).limit(limit)
            return await cursor.to_list(length=None)
        except STORE_ERRORS as e:
            logger.error("summary_query_failed", user_id=owner_id, error=str(e))
            raise PersistenceError(str(e), collection=SUMMARY_COLLECTION) from e

    async def latest_summary_timestamp(self, owner_id: str) -> Optional[datetime]:
        try:
            doc = await self.db[SUMMARY_COLLECTION].find_one(
                {"userId": owner_id},
                projection={"timestamp": 1},
                sort=[("timestamp", pymongo.DESCENDING)],
            )
        except STORE_ERRORS as e:
            logger.error("summary_query_failed", user_id=owner_id, error=str(e))
            raise PersistenceError(str(e), collection=SUMMARY_COLLECTION) from e
        return parse_instant(doc["timestamp"]) if doc else None
