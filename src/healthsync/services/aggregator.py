from datetime import datetime
from typing import List, Optional

import structlog

from healthsync.extractors.registry import ExtractorRegistry, default_registry
from healthsync.models.metrics import CombinedSummary
from healthsync.models.payload import HealthPayload
from healthsync.utils.formatters import round_half_up

logger = structlog.get_logger(__name__)


class MetricAggregator:
    """Reduce the raw per-kind arrays of one payload into a CombinedSummary."""

    def __init__(self, registry: Optional[ExtractorRegistry] = None):
        self.registry = registry or default_registry()

    def _values(self, payload: HealthPayload, kind: str, field: str, expand: bool = False) -> List[float]:
        extractor = self.registry.resolve(kind)
        values = []
        for sample in payload.samples(kind):
            units = extractor.expand(sample) if expand else [sample]
            for unit in units:
                value = extractor.resolve_field(unit, field)
                if value is not None:
                    values.append(value)
        return values

    def _total(self, payload: HealthPayload, kind: str, field: str) -> int:
        return round_half_up(sum(self._values(payload, kind, field)))

    def heart_rate_stats(self, payload: HealthPayload):
        """Average, minimum and maximum bpm over every sample and nested sub-sample."""
        pool = self._values(payload, "heartRate", "bpm", expand=True)
        if not pool:
            return None, None, None
        return round_half_up(sum(pool) / len(pool)), min(pool), max(pool)

    def oxygen_average(self, payload: HealthPayload) -> Optional[float]:
        values = self._values(payload, "oxygenSaturation", "percentage")
        if not values:
            return None
        return round_half_up(sum(values) / len(values), 2)

    def aggregate(self, payload: HealthPayload, timestamp: datetime) -> CombinedSummary:
        hr_avg, hr_min, hr_max = self.heart_rate_stats(payload)
        summary = CombinedSummary(
            owner_id=payload.user_id,
            timestamp=timestamp,
            steps_total=self._total(payload, "steps", "count"),
            calories_total=self._total(payload, "calories", "kilocalories"),
            active_calories_total=self._total(payload, "activeCalories", "kilocalories"),
            distance_meters=self._total(payload, "distance", "meters"),
            sleep_minutes_total=self._total(payload, "sleep", "durationMinutes"),
            heart_rate_avg=hr_avg,
            heart_rate_min=hr_min,
            heart_rate_max=hr_max,
            oxygen_avg=self.oxygen_average(payload),
        )
        logger.debug("payload_aggregated", user_id=payload.user_id, summary=summary)
        return summary
