from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog

from healthsync.config import Settings, load_settings
from healthsync.extractors.registry import ExtractorRegistry, default_registry
from healthsync.models.metrics import CanonicalRecord
from healthsync.models.payload import SeriesResult
from healthsync.storage.store import MetricStore
from healthsync.utils.time import parse_instant, to_iso, utc_now
from .downsampler import Downsampler, pair_readings

logger = structlog.get_logger(__name__)


class QueryService:
    """Read side: period series, latest record per kind, and stored summaries."""

    def __init__(
        self,
        store: MetricStore,
        registry: Optional[ExtractorRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.registry = registry or default_registry()
        self.settings = settings or load_settings()

    async def series(
        self,
        owner_id: str,
        kind: str,
        period: Any = None,
        start: Any = None,
        end: Any = None,
        now: Optional[datetime] = None,
    ) -> SeriesResult:
        """Time-ascending, period-reduced records for one kind.

        Raises UnknownMetricKind for an unregistered kind, UnknownPeriod for an
        unknown period name and InvalidWindow for a bad custom window.
        """
        spec = self.registry.resolve(kind).spec
        sampler = Downsampler(
            period,
            now=parse_instant(now) or utc_now(),
            start=start,
            end=end,
            discriminator=spec.discriminator,
        )

        records = self.store.iter_range(
            owner_id,
            spec.collection,
            spec.key,
            sampler.start,
            sampler.end,
            filters=dict(spec.constants) or None,
        )
        async for record in records:
            sampler.add(record)
        reduced = sampler.result()
        logger.debug(
            "series_downsampled", kind=spec.key, period=sampler.period.value, stored=sampler.seen, kept=len(reduced)
        )

        pairs = None
        if spec.discriminator:
            pairs = [p.to_json() for p in pair_readings(reduced, spec.components, spec.discriminator, spec.unit)]

        return SeriesResult(
            kind=spec.key,
            period=sampler.period.value,
            start=to_iso(sampler.start),
            end=to_iso(sampler.end),
            count=len(reduced),
            records=[record.to_json() for record in reduced],
            pairs=pairs,
        )

    async def latest(self, owner_id: str, kind: str, component: Optional[str] = None) -> Optional[CanonicalRecord]:
        """Most recent record of a kind, optionally for one discriminator value."""
        spec = self.registry.resolve(kind).spec
        filters: Dict[str, Any] = dict(spec.constants)
        if component is not None:
            if not spec.discriminator:
                raise ValueError(f"{spec.key} has no components")
            filters[spec.discriminator] = component
        return await self.store.find_latest(owner_id, spec.collection, spec.key, filters or None)

    async def summaries(self, owner_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self.store.find_summaries(owner_id, limit or self.settings.summary_limit)

    async def latest_summary_timestamp(self, owner_id: str) -> Optional[str]:
        return to_iso(await self.store.latest_summary_timestamp(owner_id))
