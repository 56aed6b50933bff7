from datetime import datetime
from typing import Dict, Iterable, Optional

from healthsync.extractors.registry import ExtractorRegistry, default_registry
from healthsync.models.payload import HealthPayload
from healthsync.utils.time import parse_instant, to_iso

LatestTimestampMap = Dict[str, Optional[str]]


class LatestTimestampTracker:
    """Track, per metric kind, the newest sample instant seen in a payload."""

    def __init__(self, registry: Optional[ExtractorRegistry] = None):
        self.registry = registry or default_registry()

    def empty(self) -> LatestTimestampMap:
        return dict.fromkeys(self.registry.keys())

    def latest_for_payload(self, payload: HealthPayload) -> LatestTimestampMap:
        latest = self.empty()
        for extractor in self.registry:
            newest: Optional[datetime] = None
            for sample in payload.samples(extractor.spec.key):
                ts = extractor.latest_timestamp(sample)
                # strictly newer, so the first of equal instants is kept
                if ts is not None and (newest is None or ts > newest):
                    newest = ts
            latest[extractor.spec.key] = to_iso(newest)
        return latest

    def merge(self, maps: Iterable[LatestTimestampMap]) -> LatestTimestampMap:
        return merge_latest(maps, base=self.empty())


def merge_latest(
    maps: Iterable[LatestTimestampMap], base: Optional[LatestTimestampMap] = None
) -> LatestTimestampMap:
    """Chronological max per kind; a map that lacks a kind never erases an earlier value."""
    merged: LatestTimestampMap = dict(base or {})
    for latest in maps:
        for kind, value in latest.items():
            candidate = parse_instant(value)
            if candidate is None:
                merged.setdefault(kind, None)
                continue
            current = parse_instant(merged.get(kind))
            if current is None or candidate > current:
                merged[kind] = value
    return merged
