import math
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional, Tuple

import jsonpath_ng.ext as jsonpath
import structlog

from healthsync.utils.time import parse_instant, utc_now
from .rules import NUMBER, TEXT

logger = structlog.get_logger(__name__)

TIMESTAMP_CANDIDATES = (
    "time",
    "timestamp",
    "startTime",
    "endTime",
    "recordedAt",
    "sampleTime",
    "sampleTimestamp",
    "timeRange.startTime",
)


def to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def to_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


COERCERS = {NUMBER: to_number, TEXT: to_text}


class FieldResolver:
    """Try candidate paths in order; the first defined, coercible value wins."""

    def __init__(self, paths: Iterable[str], coerce: Callable[[Any], Any] = to_number):
        self.coerce = coerce
        self.rules: List[Tuple[str, Any]] = self._compile_paths(paths)

    @staticmethod
    def _compile_paths(paths: Iterable[str]) -> List[Tuple[str, Any]]:
        return [(path, jsonpath.parse(f"$.{path}")) for path in paths]

    @property
    def paths(self) -> List[str]:
        return [path for path, _ in self.rules]

    def resolve_with_path(self, sample: Any) -> Tuple[Any, Optional[str]]:
        """Return the resolved value and the path it came from, or ``(None, None)``."""
        if not isinstance(sample, dict):
            return None, None
        for path, expr in self.rules:
            matches = expr.find(sample)
            if not matches or matches[0].value is None:
                continue
            value = self.coerce(matches[0].value)
            if value is None:
                logger.debug("candidate_skipped", path=path, raw=matches[0].value)
                continue
            return value, path
        return None, None

    def resolve(self, sample: Any) -> Any:
        return self.resolve_with_path(sample)[0]


class TimestampResolver(FieldResolver):
    """Resolve a sample's instant from its timestamp candidates, never raising."""

    def __init__(self, preferred: Iterable[str] = ()):
        ordered = list(dict.fromkeys((*preferred, *TIMESTAMP_CANDIDATES)))
        super().__init__(ordered, coerce=parse_instant)

    def find(self, sample: Any) -> Tuple[Optional[datetime], Optional[str]]:
        return self.resolve_with_path(sample)

    def resolve_or_default(
        self, sample: Any, default: Any = None, now: Optional[datetime] = None
    ) -> datetime:
        """Resolve from the sample, then ``default``, then ``now``, then the current instant."""
        found = self.resolve(sample)
        if found is not None:
            return found
        return self.fallback(default, now)

    @staticmethod
    def fallback(default: Any = None, now: Optional[datetime] = None) -> datetime:
        fallback = parse_instant(default)
        if fallback is not None:
            return fallback
        return parse_instant(now) or utc_now()
