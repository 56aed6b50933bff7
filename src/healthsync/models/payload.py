from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HealthPayload(BaseModel):
    """One ingestion payload: an owner plus optional per-kind arrays of raw samples."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field(alias="userId")
    timestamp: Optional[Any] = None

    steps: List[Any] = Field(default_factory=list)
    heart_rate: List[Any] = Field(default_factory=list, alias="heartRate")
    calories: List[Any] = Field(default_factory=list)
    active_calories: List[Any] = Field(default_factory=list, alias="activeCalories")
    distance: List[Any] = Field(default_factory=list)
    oxygen_saturation: List[Any] = Field(default_factory=list, alias="oxygenSaturation")
    blood_pressure: List[Any] = Field(default_factory=list, alias="bloodPressure")
    blood_glucose: List[Any] = Field(default_factory=list, alias="bloodGlucose")
    body_temperature: List[Any] = Field(default_factory=list, alias="bodyTemperature")
    weight: List[Any] = Field(default_factory=list)
    hydration: List[Any] = Field(default_factory=list)
    sleep: List[Any] = Field(default_factory=list)
    exercise: List[Any] = Field(default_factory=list)

    @field_validator("user_id")
    @classmethod
    def user_id_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("userId is required")
        return v

    @field_validator(
        "steps", "heart_rate", "calories", "active_calories", "distance",
        "oxygen_saturation", "blood_pressure", "blood_glucose", "body_temperature",
        "weight", "hydration", "sleep", "exercise",
        mode="before",
    )
    @classmethod
    def null_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def samples(self, payload_key: str) -> List[Any]:
        """Raw samples for a kind, looked up by its wire name (``heartRate``)."""
        for name, info in type(self).model_fields.items():
            if (info.alias or name) == payload_key:
                return getattr(self, name)
        raise KeyError(payload_key)


class IngestResult(BaseModel):
    success: bool = True
    record_id: str
    timestamp: str
    latest_timestamps: Dict[str, Optional[str]]
    records_written: Dict[str, int] = Field(default_factory=dict)


class BatchItemOutcome(BaseModel):
    index: int
    success: bool
    user_id: Optional[str] = None
    record_id: Optional[str] = None
    timestamp: Optional[str] = None
    error: Optional[str] = None


class BatchResult(BaseModel):
    total: int
    successful: int
    failed: int
    results: List[BatchItemOutcome]
    latest_timestamps: Dict[str, Optional[str]]


class SeriesResult(BaseModel):
    kind: str
    period: str
    start: str
    end: str
    count: int
    records: List[Dict[str, Any]]
    pairs: Optional[List[Dict[str, Any]]] = None
