import math
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

logger = structlog.get_logger(__name__)

# epoch numbers at or above this are taken as milliseconds
EPOCH_MILLIS_THRESHOLD = 1e11


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_instant(value: Any) -> Optional[datetime]:
    """Parse a datetime, ISO-8601 string or epoch number into an aware UTC datetime.

    Returns None instead of raising when the value cannot be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        seconds = value / 1000 if abs(value) >= EPOCH_MILLIS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            logger.debug("epoch_out_of_range", value=value, error=str(e))
            return None

    if isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as e:
            logger.debug("unparseable_timestamp", value=value, error=str(e))
            return None
        return parse_instant(dt)

    return None


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    """Render an instant as ISO-8601 with a ``Z`` suffix, keeping millisecond precision."""
    if dt is None:
        return None
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def minutes_between(start: Any, end: Any) -> Optional[float]:
    """Minutes from ``start`` to ``end`` when both parse, otherwise None."""
    start_dt = parse_instant(start)
    end_dt = parse_instant(end)
    if start_dt is None or end_dt is None:
        return None
    return (end_dt - start_dt).total_seconds() / 60
