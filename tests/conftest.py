from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

import pytest

from healthsync.config import Settings
from healthsync.errors import PersistenceError
from healthsync.extractors.registry import default_registry
from healthsync.extractors.rules import SUMMARY_COLLECTION
from healthsync.models.metrics import CanonicalRecord, CombinedSummary
from healthsync.storage.store import MetricStore

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


class InMemoryStore(MetricStore):
    """Dict-backed store; collections listed in ``failing`` raise PersistenceError."""

    def __init__(self, failing: Optional[Set[str]] = None):
        self.collections: Dict[str, List[Dict[str, Any]]] = {}
        self.failing = failing or set()
        self._next_id = 0

    def _check(self, collection: str):
        if collection in self.failing:
            raise PersistenceError(f"write to {collection} refused", collection=collection)

    def _new_id(self) -> str:
        self._next_id += 1
        return f"id-{self._next_id}"

    def docs(self, collection: str) -> List[Dict[str, Any]]:
        return self.collections.get(collection, [])

    async def insert_summary(self, summary: CombinedSummary) -> Any:
        self._check(SUMMARY_COLLECTION)
        doc = {"_id": self._new_id(), **summary.to_document()}
        self.collections.setdefault(SUMMARY_COLLECTION, []).append(doc)
        return doc["_id"]

    async def insert_records(self, collection: str, records: List[CanonicalRecord]) -> List[Any]:
        self._check(collection)
        docs = [{"_id": self._new_id(), **record.to_document()} for record in records]
        self.collections.setdefault(collection, []).extend(docs)
        return [doc["_id"] for doc in docs]

    def _matching(self, owner_id, collection, filters):
        return [
            doc
            for doc in self.docs(collection)
            if doc["userId"] == owner_id
            and all(doc.get(k) == v for k, v in (filters or {}).items())
        ]

    async def find_latest(self, owner_id, collection, kind, filters=None):
        docs = sorted(self._matching(owner_id, collection, filters), key=lambda d: d["timestamp"], reverse=True)
        return CanonicalRecord.from_document(kind, docs[0]) if docs else None

    async def iter_range(self, owner_id, collection, kind, start, end, filters=None):
        docs = [d for d in self._matching(owner_id, collection, filters) if start <= d["timestamp"] <= end]
        docs.sort(key=lambda d: d["timestamp"])
        for doc in docs:
            yield CanonicalRecord.from_document(kind, doc)

    async def find_summaries(self, owner_id, limit=100):
        docs = sorted(self._matching(owner_id, SUMMARY_COLLECTION, None), key=lambda d: d["timestamp"], reverse=True)
        return docs[:limit]

    async def latest_summary_timestamp(self, owner_id):
        docs = await self.find_summaries(owner_id, limit=1)
        return docs[0]["timestamp"] if docs else None


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        mongodb_uri="mongodb://localhost:27017/",
        db_name="healthapp-test",
        range_batch_size=100,
        summary_limit=100,
        log_level="DEBUG",
    )


@pytest.fixture
def payload() -> Dict[str, Any]:
    return {
        "userId": "user-1",
        "timestamp": "2025-03-10T08:00:00Z",
        "steps": [
            {"count": 1200, "startTime": "2025-03-10T06:00:00Z", "endTime": "2025-03-10T07:00:00Z"},
            {"count": "800", "startTime": "2025-03-10T07:00:00Z", "endTime": "2025-03-10T07:30:00Z"},
        ],
        "heartRate": [
            {"samples": [{"beatsPerMinute": 60, "time": "2025-03-10T06:00:00Z"},
                         {"beatsPerMinute": 80, "time": "2025-03-10T06:05:00Z"}],
             "startTime": "2025-03-10T06:00:00Z"},
            {"bpm": 71, "timestamp": "2025-03-10T07:45:00Z"},
        ],
        "calories": [{"energy": {"inKilocalories": 250.4}, "timestamp": "2025-03-10T07:00:00Z"}],
        "activeCalories": [{"kcal": 99.6, "timestamp": "2025-03-10T07:00:00Z"}],
        "distance": [{"distance": {"inMeters": 1500.5}, "endTime": "2025-03-10T07:00:00Z"}],
        "oxygenSaturation": [
            {"percentage": 97, "timestamp": "2025-03-10T06:00:00Z"},
            {"percentage": 98.5, "timestamp": "2025-03-10T06:30:00Z"},
            {"percentage": "n/a", "timestamp": "2025-03-10T06:45:00Z"},
        ],
        "bloodPressure": [
            {"systolic": {"inMillimetersOfMercury": 120}, "diastolic": {"inMillimetersOfMercury": 80},
             "time": "2025-03-10T07:10:00Z"},
        ],
        "weight": [{"weight": {"inKilograms": 72.5}, "time": "2025-03-10T05:00:00Z",
                    "metadata": {"dataOrigin": "scale"}}],
        "sleep": [{"startTime": "2025-03-09T22:00:00Z", "endTime": "2025-03-10T05:30:00Z"}],
        "exercise": [{"exerciseType": "running", "startTime": "2025-03-10T06:00:00Z",
                      "endTime": "2025-03-10T06:45:00Z"}],
    }
