from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from healthsync.utils.time import parse_instant, to_iso


@dataclass(frozen=True)
class CanonicalRecord:
    owner_id: str
    kind: str
    timestamp: datetime
    values: Dict[str, Any] = field(default_factory=dict)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    summary_id: Optional[Any] = None

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {"userId": self.owner_id, "timestamp": self.timestamp}
        if self.summary_id is not None:
            doc["healthDataId"] = self.summary_id
        doc.update(self.values)
        if self.start_time is not None:
            doc["startTime"] = self.start_time
        if self.end_time is not None:
            doc["endTime"] = self.end_time
        if self.metadata:
            doc["metadata"] = self.metadata
        return doc

    @classmethod
    def from_document(cls, kind: str, doc: Dict[str, Any]) -> "CanonicalRecord":
        reserved = {"_id", "userId", "timestamp", "healthDataId", "startTime", "endTime",
                    "metadata", "createdAt", "updatedAt", "__v"}
        return cls(
            owner_id=doc["userId"],
            kind=kind,
            timestamp=parse_instant(doc["timestamp"]),
            values={k: v for k, v in doc.items() if k not in reserved},
            start_time=parse_instant(doc.get("startTime")),
            end_time=parse_instant(doc.get("endTime")),
            metadata=doc.get("metadata") or {},
            summary_id=doc.get("healthDataId"),
        )

    def to_json(self) -> Dict[str, Any]:
        doc = self.to_document()
        for key in ("timestamp", "startTime", "endTime"):
            if key in doc:
                doc[key] = to_iso(doc[key])
        if "healthDataId" in doc:
            doc["healthDataId"] = str(doc["healthDataId"])
        return doc


@dataclass(frozen=True)
class CombinedSummary:
    owner_id: str
    timestamp: datetime
    steps_total: int = 0
    calories_total: int = 0
    active_calories_total: int = 0
    distance_meters: int = 0
    sleep_minutes_total: int = 0
    heart_rate_avg: Optional[int] = None
    heart_rate_min: Optional[float] = None
    heart_rate_max: Optional[float] = None
    oxygen_avg: Optional[float] = None

    def to_document(self) -> Dict[str, Any]:
        return {
            "userId": self.owner_id,
            "timestamp": self.timestamp,
            "steps": self.steps_total,
            "heartRate": self.heart_rate_avg,
            "heartRateMin": self.heart_rate_min,
            "heartRateMax": self.heart_rate_max,
            "calories": self.calories_total,
            "activeCalories": self.active_calories_total,
            "distance": self.distance_meters,
            "oxygenSaturation": self.oxygen_avg,
            "sleepMinutes": self.sleep_minutes_total,
        }


@dataclass(frozen=True)
class PairedReading:
    """One instant of a multi-component kind, keyed by component name in rule order."""

    timestamp: datetime
    values: Dict[str, Optional[float]]
    unit: Optional[str] = None

    def get(self, component: str) -> Optional[float]:
        return self.values.get(component)

    def to_json(self) -> Dict[str, Any]:
        return {"timestamp": to_iso(self.timestamp), **self.values, "unit": self.unit}
