from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple

import structlog

from healthsync.models.metrics import CanonicalRecord
from healthsync.utils.json_path import flatten_deep, path_to_key, remove_duplicates
from healthsync.utils.time import minutes_between, parse_instant
from .base import BaseExtractor
from .resolver import COERCERS, FieldResolver, TimestampResolver
from .rules import KindSpec

logger = structlog.get_logger(__name__)


class GenericExtractor(BaseExtractor):
    def __init__(self, spec: KindSpec):
        self.spec = spec
        self.timestamps = TimestampResolver(spec.preferred_timestamps)
        self.resolvers = self._compile_fields()

    def _compile_fields(self) -> Dict[str, FieldResolver]:
        return {
            rule.name: FieldResolver(rule.paths, coerce=COERCERS[rule.coerce])
            for rule in self.spec.fields
        }

    def _resolve_with_path(self, sample: Any, name: str) -> Tuple[Any, Optional[str]]:
        value, path = self.resolvers[name].resolve_with_path(sample)
        if value is None and name == self.spec.duration_field and isinstance(sample, dict):
            minutes = minutes_between(sample.get("startTime"), sample.get("endTime"))
            if minutes is not None:
                return minutes, None
        return value, path

    def resolve_field(self, sample: Any, name: str) -> Any:
        return self._resolve_with_path(sample, name)[0]

    def latest_timestamp(self, sample: Any) -> Optional[datetime]:
        """The sample's own instant, without any fallback."""
        return self.timestamps.resolve(sample)

    def expand(self, sample: Any) -> List[Dict[str, Any]]:
        """Unwrap a sample carrying a list of sub-samples into the units that hold values.

        The parent stays in the list when it has no sub-samples or resolves a
        primary value of its own.
        """
        if not isinstance(sample, dict):
            return []
        key = self.spec.subsample_key
        subs = sample.get(key) if key else None
        if not isinstance(subs, list) or not subs:
            return [sample]
        units = [sub for sub in subs if isinstance(sub, dict)]
        if self.resolve_field(sample, self.spec.primary.name) is not None:
            units.insert(0, sample)
        return units

    def extract(
        self,
        samples: List[Any],
        owner_id: str,
        default_timestamp: Any = None,
        now: Optional[datetime] = None,
    ) -> List[CanonicalRecord]:
        records: List[CanonicalRecord] = []
        for sample in samples:
            if not isinstance(sample, dict):
                logger.debug("sample_ignored", kind=self.spec.key, sample=sample)
                continue
            parent_ts = self.timestamps.resolve_or_default(sample, default_timestamp, now)
            for unit in self.expand(sample):
                default = parent_ts if unit is not sample else default_timestamp
                records.extend(self._build(unit, owner_id, default, now))
        return records

    def _build(
        self, sample: Dict[str, Any], owner_id: str, default: Any, now: Optional[datetime]
    ) -> List[CanonicalRecord]:
        spec = self.spec
        timestamp, ts_path = self.timestamps.find(sample)
        if timestamp is None:
            timestamp = self.timestamps.fallback(default, now)

        consumed: Set[str] = set(spec.constants)
        if ts_path:
            consumed.add(path_to_key(ts_path))
        if spec.subsample_key:
            consumed.add(spec.subsample_key)

        values: Dict[str, Any] = {}
        for rule in spec.fields:
            value, path = self._resolve_with_path(sample, rule.name)
            values[rule.name] = value
            consumed.add(rule.name)
            if path:
                consumed.add(path_to_key(path))

        start_time = end_time = None
        if spec.interval:
            start_time = parse_instant(sample.get("startTime"))
            end_time = parse_instant(sample.get("endTime"))
            consumed.update(("startTime", "endTime"))

        if spec.hours_field:
            minutes = values.get(spec.duration_field)
            values[spec.hours_field] = round(minutes / 60, 2) if minutes is not None else None

        metadata = remove_duplicates(dict.fromkeys(consumed), flatten_deep(sample))

        if spec.discriminator:
            return [
                CanonicalRecord(
                    owner_id=owner_id,
                    kind=spec.key,
                    timestamp=timestamp,
                    values={spec.discriminator: name, "value": values[name], "unit": spec.unit},
                    metadata=metadata,
                )
                for name in spec.components
                if values[name] is not None
            ]

        values.update(spec.constants)
        return [
            CanonicalRecord(
                owner_id=owner_id,
                kind=spec.key,
                timestamp=timestamp,
                values=values,
                start_time=start_time,
                end_time=end_time,
                metadata=metadata,
            )
        ]
