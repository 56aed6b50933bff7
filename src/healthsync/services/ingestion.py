from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError

from healthsync.errors import PayloadValidationError, PersistenceError
from healthsync.extractors.registry import ExtractorRegistry, default_registry
from healthsync.models.metrics import CanonicalRecord
from healthsync.models.payload import BatchItemOutcome, BatchResult, HealthPayload, IngestResult
from healthsync.storage.store import MetricStore
from healthsync.utils.time import parse_instant, to_iso, utc_now
from .aggregator import MetricAggregator
from .latest import LatestTimestampTracker

logger = structlog.get_logger(__name__)


def validate_payload(data: Any) -> HealthPayload:
    """Validate a raw payload, turning pydantic errors into PayloadValidationError."""
    if isinstance(data, HealthPayload):
        return data
    if not isinstance(data, dict):
        raise PayloadValidationError("payload must be a JSON object")
    try:
        return HealthPayload.model_validate(data)
    except ValidationError as e:
        fields = {".".join(str(p) for p in err["loc"]) for err in e.errors()}
        if "userId" in fields or "user_id" in fields:
            raise PayloadValidationError("userId is required") from e
        raise PayloadValidationError(f"invalid payload: {sorted(fields)}") from e


class IngestionService:
    def __init__(self, store: MetricStore, registry: Optional[ExtractorRegistry] = None):
        self.store = store
        self.registry = registry or default_registry()
        self.aggregator = MetricAggregator(self.registry)
        self.tracker = LatestTimestampTracker(self.registry)

    def normalize(self, payload: HealthPayload, now: datetime) -> Dict[str, List[CanonicalRecord]]:
        """Canonical records per kind, in registry order. Pure; nothing is written."""
        records = {}
        for extractor in self.registry:
            samples = payload.samples(extractor.spec.key)
            if samples:
                records[extractor.spec.key] = extractor.extract(
                    samples, payload.user_id, default_timestamp=payload.timestamp, now=now
                )
        return records

    async def ingest(self, data: Any, now: Optional[datetime] = None) -> IngestResult:
        """Normalize, summarize and persist one payload.

        Raises PayloadValidationError before any write, and PersistenceError
        when a store call fails.
        """
        now = parse_instant(now) or utc_now()
        payload = validate_payload(data)

        timestamp = parse_instant(payload.timestamp) or now
        summary = self.aggregator.aggregate(payload, timestamp)
        latest = self.tracker.latest_for_payload(payload)
        by_kind = self.normalize(payload, now)

        summary_id = await self.store.insert_summary(summary)
        logger.info("summary_inserted", user_id=payload.user_id, record_id=str(summary_id))

        written = {}
        for kind, records in by_kind.items():
            if not records:
                continue
            collection = self.registry.resolve(kind).spec.collection
            linked = [replace(record, summary_id=summary_id) for record in records]
            await self.store.insert_records(collection, linked)
            written[kind] = len(linked)

        return IngestResult(
            record_id=str(summary_id),
            timestamp=to_iso(timestamp),
            latest_timestamps=latest,
            records_written=written,
        )

    async def ingest_batch(self, items: List[Any], now: Optional[datetime] = None) -> BatchResult:
        """Ingest payloads one after another, recording failures instead of stopping."""
        now = parse_instant(now) or utc_now()
        outcomes: List[BatchItemOutcome] = []
        latest_maps = []

        for index, data in enumerate(items):
            user_id = data.get("userId") if isinstance(data, dict) else None
            if user_id is not None:
                user_id = str(user_id)
            try:
                result = await self.ingest(data, now=now)
            except (PayloadValidationError, PersistenceError) as e:
                logger.error("batch_item_failed", index=index, user_id=user_id, error=str(e))
                raw_ts = data.get("timestamp") if isinstance(data, dict) else None
                outcomes.append(
                    BatchItemOutcome(
                        index=index,
                        success=False,
                        user_id=user_id,
                        timestamp=to_iso(parse_instant(raw_ts)) if raw_ts is not None else None,
                        error=str(e),
                    )
                )
                continue
            latest_maps.append(result.latest_timestamps)
            outcomes.append(
                BatchItemOutcome(
                    index=index,
                    success=True,
                    user_id=user_id,
                    record_id=result.record_id,
                    timestamp=result.timestamp,
                )
            )

        successful = sum(1 for o in outcomes if o.success)
        logger.info("batch_completed", total=len(items), successful=successful, failed=len(items) - successful)
        return BatchResult(
            total=len(items),
            successful=successful,
            failed=len(items) - successful,
            results=outcomes,
            latest_timestamps=self.tracker.merge(latest_maps),
        )
