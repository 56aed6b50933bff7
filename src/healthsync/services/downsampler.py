"""Period-based windowing and reduction of time-ordered records for charting.

Records are grouped by UTC calendar day and, for paired series, by the
discriminator value, so one component never displaces the other when the
first or last record of a day is picked.
"""
from collections import OrderedDict
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from healthsync.errors import InvalidWindow, UnknownPeriod
from healthsync.models.metrics import CanonicalRecord, PairedReading
from healthsync.utils.time import parse_instant, utc_now


class Period(Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: Any) -> "Period":
        if value is None or value == "":
            return cls.WEEKLY
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownPeriod(str(value)) from None


LOOKBACK_DAYS = {
    Period.DAILY: 1,
    Period.WEEKLY: 7,
    Period.MONTHLY: 30,
    Period.QUARTERLY: 90,
    Period.YEARLY: 365,
}


class Reduction(Enum):
    NONE = "none"
    FIRST_LAST = "first_last"
    FIRST = "first"


def resolve_window(
    period: Period,
    now: Optional[datetime] = None,
    start: Any = None,
    end: Any = None,
) -> Tuple[datetime, datetime]:
    """Lookback window ending at ``now``; custom periods take explicit bounds."""
    now = parse_instant(now) or utc_now()
    if period is Period.CUSTOM:
        start_dt = parse_instant(start)
        if start_dt is None:
            raise InvalidWindow("custom period requires a start instant")
        end_dt = parse_instant(end) or now
        if end_dt < start_dt:
            raise InvalidWindow("custom period ends before it starts")
        return start_dt, end_dt
    return now - timedelta(days=LOOKBACK_DAYS[period]), now


def reduction_for(period: Period, start: datetime, end: datetime) -> Reduction:
    if period is Period.CUSTOM:
        span = end - start
        if span <= timedelta(days=1):
            return Reduction.NONE
        if span <= timedelta(days=7):
            return Reduction.FIRST_LAST
        return Reduction.FIRST
    if period is Period.DAILY:
        return Reduction.NONE
    if period is Period.WEEKLY:
        return Reduction.FIRST_LAST
    return Reduction.FIRST


class Downsampler:
    """Window filter and per-group reduction fed one record at a time.

    Reducing periods keep only the earliest and latest record of each
    (day, discriminator) group, so a range read can be reduced while its
    cursor streams without holding the whole window in memory. Input order
    does not matter.
    """

    def __init__(
        self,
        period: Any = None,
        now: Optional[datetime] = None,
        start: Any = None,
        end: Any = None,
        discriminator: Optional[str] = None,
    ):
        self.period = Period.parse(period)
        self.start, self.end = resolve_window(self.period, now, start, end)
        self.reduction = reduction_for(self.period, self.start, self.end)
        self.discriminator = discriminator
        self.seen = 0
        self._all: List[CanonicalRecord] = []
        self._groups: Dict[Tuple[Any, str], List[CanonicalRecord]] = {}

    def _group_key(self, record: CanonicalRecord) -> Tuple[Any, str]:
        tag = record.get(self.discriminator) if self.discriminator else None
        return record.timestamp.date(), "" if tag is None else str(tag)

    def add(self, record: CanonicalRecord):
        if not self.start <= record.timestamp <= self.end:
            return
        self.seen += 1
        if self.reduction is Reduction.NONE:
            self._all.append(record)
            return

        key = self._group_key(record)
        group = self._groups.get(key)
        if group is None:
            self._groups[key] = [record, record]
            return
        # earliest keeps the first seen on ties, latest the last seen
        if record.timestamp < group[0].timestamp:
            group[0] = record
        if record.timestamp >= group[1].timestamp:
            group[1] = record

    def result(self) -> List[CanonicalRecord]:
        if self.reduction is Reduction.NONE:
            return sorted(self._all, key=lambda r: r.timestamp)

        kept = []
        for (_, tag), (first, last) in self._groups.items():
            kept.append((first.timestamp, tag, 0, first))
            if self.reduction is Reduction.FIRST_LAST and last is not first:
                kept.append((last.timestamp, tag, 1, last))
        kept.sort(key=lambda item: item[:3])
        return [item[3] for item in kept]


def downsample(
    records: Iterable[CanonicalRecord],
    period: Any = None,
    now: Optional[datetime] = None,
    start: Any = None,
    end: Any = None,
    discriminator: Optional[str] = None,
) -> List[CanonicalRecord]:
    sampler = Downsampler(period, now=now, start=start, end=end, discriminator=discriminator)
    for record in records:
        sampler.add(record)
    return sampler.result()


def pair_readings(
    records: Sequence[CanonicalRecord],
    components: Sequence[str],
    discriminator: str = "type",
    unit: Optional[str] = None,
) -> List[PairedReading]:
    """Collapse co-timestamped component records into one reading carrying every component."""
    by_time: Dict[datetime, Dict[str, Any]] = OrderedDict()
    units: Dict[datetime, Optional[str]] = {}
    for record in sorted(records, key=lambda r: r.timestamp):
        slot = by_time.setdefault(record.timestamp, dict.fromkeys(components))
        name = record.get(discriminator)
        if name in slot and slot[name] is None:
            slot[name] = record.get("value")
            units.setdefault(record.timestamp, record.get("unit"))
    return [
        PairedReading(timestamp=ts, values=slot, unit=units.get(ts) or unit)
        for ts, slot in by_time.items()
    ]
