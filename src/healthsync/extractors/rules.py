"""Declarative rule tables, one per metric kind.

Each table lists, per canonical field, the candidate paths tried in order
against a raw sample. Supporting a new source variant means adding a path;
supporting a new kind means adding a ``KindSpec``.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

NUMBER = "number"
TEXT = "text"


@dataclass(frozen=True)
class FieldRule:
    name: str
    paths: Tuple[str, ...]
    coerce: str = NUMBER


@dataclass(frozen=True)
class KindSpec:
    key: str
    collection: str
    fields: Tuple[FieldRule, ...]
    preferred_timestamps: Tuple[str, ...] = ()
    interval: bool = False
    # computed as endTime - startTime when no candidate resolves
    duration_field: Optional[str] = None
    hours_field: Optional[str] = None
    subsample_key: Optional[str] = None
    # set for paired series: each field becomes its own record tagged with this key
    discriminator: Optional[str] = None
    unit: Optional[str] = None
    constants: Dict[str, Any] = field(default_factory=dict)
    aliases: Tuple[str, ...] = ()

    @property
    def primary(self) -> FieldRule:
        return self.fields[0]

    @property
    def components(self) -> Tuple[str, ...]:
        return tuple(rule.name for rule in self.fields) if self.discriminator else ()


CALORIE_PATHS = (
    "energy.inKilocalories",
    "energy.kilocalories",
    "kcal",
    "kilocalories",
    "calories",
    "value",
)

KIND_SPECS: Tuple[KindSpec, ...] = (
    KindSpec(
        key="steps",
        collection="steps",
        fields=(FieldRule("count", ("count", "steps", "value")),),
        preferred_timestamps=("endTime",),
        interval=True,
    ),
    KindSpec(
        key="heartRate",
        collection="heartrates",
        fields=(FieldRule("bpm", ("beatsPerMinute", "bpm", "value")),),
        subsample_key="samples",
        aliases=("hr",),
    ),
    KindSpec(
        key="calories",
        collection="calories",
        fields=(FieldRule("kilocalories", CALORIE_PATHS),),
        interval=True,
        constants={"type": "total"},
    ),
    KindSpec(
        key="activeCalories",
        collection="calories",
        fields=(FieldRule("kilocalories", CALORIE_PATHS),),
        interval=True,
        constants={"type": "active"},
    ),
    KindSpec(
        key="distance",
        collection="distances",
        fields=(FieldRule("meters", ("distance.inMeters", "distance.meters", "meters", "value")),),
        interval=True,
    ),
    KindSpec(
        key="oxygenSaturation",
        collection="oxygensaturations",
        fields=(FieldRule("percentage", ("percentage.value", "percentage", "spo2", "value")),),
        aliases=("oxygen", "spo2"),
    ),
    KindSpec(
        key="bloodPressure",
        collection="bloodpressures",
        fields=(
            FieldRule(
                "systolic",
                ("systolic.inMillimetersOfMercury", "systolic.value", "systolic"),
            ),
            FieldRule(
                "diastolic",
                ("diastolic.inMillimetersOfMercury", "diastolic.value", "diastolic"),
            ),
        ),
        discriminator="type",
        unit="mmHg",
        aliases=("bp",),
    ),
    KindSpec(
        key="bloodGlucose",
        collection="bloodglucoses",
        fields=(
            FieldRule(
                "mmolPerL",
                ("level.inMillimolesPerLiter", "level.value", "mmolPerL", "level", "value"),
            ),
        ),
        aliases=("glucose",),
    ),
    KindSpec(
        key="bodyTemperature",
        collection="bodytemperatures",
        fields=(
            FieldRule(
                "celsius",
                ("temperature.inCelsius", "temperature.celsius", "celsius", "value"),
            ),
        ),
        aliases=("temperature",),
    ),
    KindSpec(
        key="weight",
        collection="weights",
        fields=(
            FieldRule("kilograms", ("weight.inKilograms", "weight.value", "kilograms", "kg", "value")),
        ),
    ),
    KindSpec(
        key="hydration",
        collection="hydrations",
        fields=(FieldRule("liters", ("volume.inLiters", "volume.liters", "liters", "value")),),
    ),
    KindSpec(
        key="sleep",
        collection="sleeps",
        fields=(FieldRule("durationMinutes", ("durationMinutes", "duration", "minutes")),),
        preferred_timestamps=("endTime",),
        interval=True,
        duration_field="durationMinutes",
        hours_field="totalHours",
    ),
    KindSpec(
        key="exercise",
        collection="exercises",
        fields=(
            FieldRule("type", ("exerciseType", "type", "title"), coerce=TEXT),
            FieldRule("durationMinutes", ("durationMinutes", "duration")),
        ),
        preferred_timestamps=("endTime",),
        interval=True,
        duration_field="durationMinutes",
    ),
)

SUMMARY_COLLECTION = "healthdatas"
