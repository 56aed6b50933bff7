from datetime import datetime, timezone

import pytest

from healthsync.errors import UnknownMetricKind
from healthsync.extractors.registry import default_registry
from healthsync.utils.formatters import format_kind_name


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestRegistry:
    @pytest.mark.parametrize(
        "name, key",
        [
            ("steps", "steps"),
            ("heartrate", "heartRate"),
            ("Heart Rate", "heartRate"),
            ("heart-rate", "heartRate"),
            ("oxygen", "oxygenSaturation"),
            ("bloodpressure", "bloodPressure"),
            ("glucose", "bloodGlucose"),
            ("temperature", "bodyTemperature"),
            ("activeCalories", "activeCalories"),
        ],
    )
    def test_resolves_names_and_aliases(self, registry, name, key):
        assert registry.resolve(name).spec.key == key

    def test_unknown_kind_raises(self, registry):
        with pytest.raises(UnknownMetricKind, match="Invalid metric name: mood"):
            registry.resolve("mood")

    def test_registers_all_thirteen_kinds(self, registry):
        assert len(list(registry.keys())) == 13

    @pytest.mark.parametrize("name", ["heartRate", "Heart Rate", "heart-rate", "HEART_RATE"])
    def test_kind_names_normalize_to_one_form(self, name):
        assert format_kind_name(name) == "heartrate"


class TestGenericExtractor:
    def test_steps_record_uses_end_time_and_interval_bounds(self, registry, now):
        sample = {"count": 500, "startTime": "2025-03-10T06:00:00Z", "endTime": "2025-03-10T07:00:00Z"}
        [record] = registry.resolve("steps").extract([sample], "u1", now=now)
        assert record.timestamp == utc(2025, 3, 10, 7)
        assert record.values == {"count": 500}
        assert record.start_time == utc(2025, 3, 10, 6)
        assert record.metadata == {}

    def test_unresolved_timestamp_falls_back_to_payload_then_now(self, registry, now):
        extractor = registry.resolve("weight")
        [with_default] = extractor.extract([{"kg": 70}], "u1", default_timestamp="2025-03-01T00:00:00Z", now=now)
        [without] = extractor.extract([{"kg": 70}], "u1", now=now)
        assert with_default.timestamp == utc(2025, 3, 1)
        assert without.timestamp == now

    def test_leftover_fields_become_flattened_metadata(self, registry, now):
        sample = {
            "weight": {"inKilograms": 72.5, "inPounds": 159.8},
            "time": "2025-03-10T05:00:00Z",
            "metadata": {"dataOrigin": {"packageName": "com.scale"}, "id": "abc"},
        }
        [record] = registry.resolve("weight").extract([sample], "u1", now=now)
        assert record.get("kilograms") == 72.5
        assert record.metadata == {
            "weight_inPounds": 159.8,
            "metadata_dataOrigin_packageName": "com.scale",
            "metadata_id": "abc",
        }

    def test_heart_rate_sub_samples_expand_into_records(self, registry, now):
        sample = {
            "startTime": "2025-03-10T06:00:00Z",
            "samples": [{"beatsPerMinute": 60, "time": "2025-03-10T06:01:00Z"}, {"beatsPerMinute": 62}],
        }
        records = registry.resolve("heartRate").extract([sample], "u1", now=now)
        assert [r.get("bpm") for r in records] == [60, 62]
        assert records[0].timestamp == utc(2025, 3, 10, 6, 1)
        # the second sub-sample inherits the parent's instant
        assert records[1].timestamp == utc(2025, 3, 10, 6)

    def test_blood_pressure_splits_into_component_records(self, registry, now):
        sample = {"systolic": {"inMillimetersOfMercury": 121}, "diastolic": 79, "time": "2025-03-10T07:00:00Z"}
        records = registry.resolve("bloodPressure").extract([sample], "u1", now=now)
        assert [r.values for r in records] == [
            {"type": "systolic", "value": 121, "unit": "mmHg"},
            {"type": "diastolic", "value": 79, "unit": "mmHg"},
        ]
        assert {r.timestamp for r in records} == {utc(2025, 3, 10, 7)}

    def test_blood_pressure_missing_component_is_not_emitted(self, registry, now):
        records = registry.resolve("bloodPressure").extract([{"systolic": 130}], "u1", now=now)
        assert [r.get("type") for r in records] == ["systolic"]

    def test_sleep_duration_computed_from_bounds(self, registry, now):
        sample = {"startTime": "2025-03-09T22:00:00Z", "endTime": "2025-03-10T05:30:00Z"}
        [record] = registry.resolve("sleep").extract([sample], "u1", now=now)
        assert record.get("durationMinutes") == 450
        assert record.get("totalHours") == 7.5
        assert record.timestamp == utc(2025, 3, 10, 5, 30)

    def test_calorie_kinds_are_tagged(self, registry, now):
        [total] = registry.resolve("calories").extract([{"kcal": 10}], "u1", now=now)
        [active] = registry.resolve("activeCalories").extract([{"kcal": 5}], "u1", now=now)
        assert total.get("type") == "total"
        assert active.get("type") == "active"

    def test_exercise_text_and_duration(self, registry, now):
        sample = {"type": "cycling", "startTime": "2025-03-10T06:00:00Z", "endTime": "2025-03-10T06:40:00Z"}
        [record] = registry.resolve("exercise").extract([sample], "u1", now=now)
        assert record.values == {"type": "cycling", "durationMinutes": 40}

    def test_non_dict_samples_are_ignored(self, registry, now):
        assert registry.resolve("steps").extract([None, 5, "x"], "u1", now=now) == []

    def test_document_round_trip_keeps_values(self, registry, now):
        [record] = registry.resolve("steps").extract(
            [{"count": 5, "endTime": "2025-03-10T07:00:00Z", "source": "watch"}], "u1", now=now
        )
        doc = record.to_document()
        assert doc["userId"] == "u1"
        assert doc["metadata"] == {"source": "watch"}
        restored = type(record).from_document("steps", {"_id": "x", **doc})
        assert restored == record
