"""Typed Garmin Connect response structures and tolerant extraction.

Each endpoint the aggregator touches gets a pydantic model whose fields are
all optional.  ``parse_payload`` never raises: a payload that does not fit
the model is logged and treated as "no data", and every ``extract_*``
function returns ``None`` when the metric it looks for is absent.  One
malformed field therefore never blocks extraction of the other metrics that
share a payload.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from pulselogic.garmin.models import (
    ActivityRecord,
    BodyBatteryRecord,
    HeartRateRecord,
    SleepRecord,
    StressRecord,
)

logger = logging.getLogger("pulselogic.garmin.payloads")

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class GarminPayload(BaseModel):
    """Base model: camelCase aliases, unknown fields ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ---------- Sleep (/wellness-service/wellness/dailySleepData) ----------


class ScoreValue(GarminPayload):
    value: float | None = None
    qualifier_key: str | None = None


class SleepScores(GarminPayload):
    overall: ScoreValue | None = None
    stress: ScoreValue | None = None


class DailySleepDTO(GarminPayload):
    calendar_date: str | None = None
    sleep_time_seconds: float | None = None
    deep_sleep_seconds: float | None = None
    light_sleep_seconds: float | None = None
    rem_sleep_seconds: float | None = None
    awake_sleep_seconds: float | None = None
    avg_sleep_stress: float | None = None
    sleep_scores: SleepScores | None = None


class SleepBodyBatterySample(GarminPayload):
    value: float | None = None
    start_gmt: int | str | None = Field(default=None, alias="startGMT")


class SleepPayload(GarminPayload):
    daily_sleep_dto: DailySleepDTO | None = Field(default=None, alias="dailySleepDTO")
    resting_heart_rate: float | None = None
    body_battery_change: float | None = None
    sleep_body_battery: list[SleepBodyBatterySample] | None = None


# ---------- Stress (/usersummary-service/usersummary/daily) ----------


class DailySummaryPayload(GarminPayload):
    calendar_date: str | None = None
    overall_stress_level: float | None = None
    avg_stress_level: float | None = Field(
        default=None, validation_alias=AliasChoices("avgStressLevel", "averageStressLevel")
    )
    max_stress_level: float | None = None
    rest_stress_duration: float | None = None
    low_stress_duration: float | None = None
    medium_stress_duration: float | None = None
    high_stress_duration: float | None = None
    stress_qualifier: str | None = None


# ---------- Body battery (/wellness-service/wellness/bodyBattery) ----------


class BodyBatteryReport(GarminPayload):
    date: str | None = None
    charged: float | None = None
    drained: float | None = None


class BodyBatteryStat(GarminPayload):
    stats_type: str | None = None
    stats_value: float | None = None


class BodyBatteryEventsPayload(GarminPayload):
    date: str | None = None
    body_battery_stat_list: list[BodyBatteryStat] | None = None


# ---------- Activities (/activitylist-service/activities/search/activities) ----------


class ActivityType(GarminPayload):
    type_key: str | None = None


class ActivityPayload(GarminPayload):
    activity_id: int | None = None
    activity_name: str | None = None
    activity_type: ActivityType | None = None
    start_time_local: str | None = None
    duration: float | None = None
    distance: float | None = None
    calories: float | None = None
    average_hr: float | None = Field(default=None, alias="averageHR")
    max_hr: float | None = Field(default=None, alias="maxHR")
    average_speed: float | None = None


# ---------- Heart rate (/wellness-service/wellness/dailyHeartRate) ----------


class HeartRatePayload(GarminPayload):
    calendar_date: str | None = None
    resting_heart_rate: float | None = None
    min_heart_rate: float | None = None
    max_heart_rate: float | None = None


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def parse_payload(model: type[PayloadT], raw: Any) -> PayloadT | None:
    """Validate ``raw`` against ``model``; ``None`` for empty or malformed input."""
    if not raw or not isinstance(raw, dict):
        return None
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Discarding malformed %s payload: %d error(s)", model.__name__, exc.error_count())
        return None


def parse_payload_list(model: type[PayloadT], raw: Any) -> list[PayloadT]:
    """Validate every item of a list payload, skipping the ones that do not fit."""
    if not isinstance(raw, list):
        return []
    parsed = (parse_payload(model, item) for item in raw)
    return [item for item in parsed if item is not None]


def parse_sleep_payload(raw: Any) -> SleepPayload | None:
    """Parse a sleep payload section by section.

    The DTO, the resting heart rate and the body battery trace are validated
    independently so a malformed section only loses its own metric.
    """
    if not raw or not isinstance(raw, dict):
        return None
    samples = raw.get("sleepBodyBattery")
    return SleepPayload(
        daily_sleep_dto=parse_payload(DailySleepDTO, raw.get("dailySleepDTO")),
        resting_heart_rate=_number(raw.get("restingHeartRate")),
        body_battery_change=_number(raw.get("bodyBatteryChange")),
        sleep_body_battery=parse_payload_list(SleepBodyBatterySample, samples) if samples is not None else None,
    )


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _int(value: float | None, default: int = 0) -> int:
    return default if value is None else int(round(value))


def _int_or_none(value: float | None) -> int | None:
    return None if value is None else int(round(value))


# ---------------------------------------------------------------------------
# Extraction: sleep payload (primary source for three metrics)
# ---------------------------------------------------------------------------


def extract_sleep(day: str, payload: SleepPayload | None) -> SleepRecord | None:
    if payload is None or payload.daily_sleep_dto is None:
        return None
    dto = payload.daily_sleep_dto
    overall = dto.sleep_scores.overall if dto.sleep_scores else None
    return SleepRecord(
        date=day,
        sleep_time_seconds=_int(dto.sleep_time_seconds),
        deep_sleep_seconds=_int(dto.deep_sleep_seconds),
        light_sleep_seconds=_int(dto.light_sleep_seconds),
        rem_sleep_seconds=_int(dto.rem_sleep_seconds),
        awake_sleep_seconds=_int(dto.awake_sleep_seconds),
        sleep_score=_int_or_none(overall.value) if overall else None,
        resting_heart_rate=_int_or_none(payload.resting_heart_rate),
    )


def extract_stress_from_sleep(day: str, payload: SleepPayload | None) -> StressRecord | None:
    """Average sleep stress (0-100) stands in for the day's overall level."""
    if payload is None or payload.daily_sleep_dto is None:
        return None
    dto = payload.daily_sleep_dto
    if dto.avg_sleep_stress is None:
        return None
    stress_score = dto.sleep_scores.stress if dto.sleep_scores else None
    return StressRecord(
        date=day,
        overall_stress_level=_int(dto.avg_sleep_stress),
        stress_qualifier=(stress_score.qualifier_key if stress_score else None) or "unknown",
    )


def extract_body_battery_from_sleep(day: str, payload: SleepPayload | None) -> BodyBatteryRecord | None:
    if payload is None:
        return None
    samples = payload.sleep_body_battery or []
    if payload.body_battery_change is None and not samples:
        return None

    values = [int(s.value) for s in samples if s.value is not None and s.value > 0]
    return BodyBatteryRecord(
        date=day,
        charged=_int(payload.body_battery_change),
        start_level=values[0] if values else 0,
        end_level=values[-1] if values else 0,
        highest_level=max(values) if values else 0,
        lowest_level=min(values) if values else 0,
    )


# ---------------------------------------------------------------------------
# Extraction: dedicated endpoints (fallback tiers)
# ---------------------------------------------------------------------------


def extract_stress_from_summary(day: str, payload: DailySummaryPayload | None) -> StressRecord | None:
    if payload is None:
        return None
    overall = payload.overall_stress_level
    if overall is None:
        overall = payload.avg_stress_level
    if overall is None:
        return None
    return StressRecord(
        date=day,
        overall_stress_level=_int(overall),
        rest_stress_level=_int(payload.rest_stress_duration),
        low_stress_level=_int(payload.low_stress_duration),
        medium_stress_level=_int(payload.medium_stress_duration),
        high_stress_level=_int(payload.high_stress_duration),
        stress_qualifier=payload.stress_qualifier or "unknown",
    )


def extract_body_battery_from_report(report: BodyBatteryReport) -> BodyBatteryRecord | None:
    if not report.date:
        return None
    return BodyBatteryRecord(
        date=report.date,
        charged=_int(report.charged),
        drained=_int(report.drained),
    )


def extract_body_battery_from_events(day: str, payload: BodyBatteryEventsPayload | None) -> BodyBatteryRecord | None:
    if payload is None:
        return None
    stats = {s.stats_type: s.stats_value for s in payload.body_battery_stat_list or [] if s.stats_type}

    def stat(*names: str) -> int:
        # Garmin has shipped both camelCase and upper-case stat names.
        for name in names:
            value = stats.get(name)
            if value:
                return _int(value)
        return 0

    return BodyBatteryRecord(
        date=day,
        charged=stat("charged", "CHARGED"),
        drained=stat("drained", "DRAINED"),
        start_level=stat("startLevel", "START"),
        end_level=stat("endLevel", "END"),
        highest_level=stat("highest", "MAX"),
        lowest_level=stat("lowest", "MIN"),
    )


def extract_activity(payload: ActivityPayload) -> ActivityRecord | None:
    if not payload.start_time_local:
        return None
    return ActivityRecord(
        activity_id=payload.activity_id or 0,
        activity_name=payload.activity_name or "Unnamed Activity",
        activity_type=(payload.activity_type.type_key if payload.activity_type else None) or "unknown",
        start_time_local=payload.start_time_local,
        duration=payload.duration or 0.0,
        distance=payload.distance,
        calories=payload.calories or 0.0,
        average_hr=payload.average_hr,
        max_hr=payload.max_hr,
        average_speed=payload.average_speed,
    )


def extract_heart_rate(day: str, payload: HeartRatePayload | None) -> HeartRateRecord | None:
    if payload is None:
        return None
    if payload.resting_heart_rate is None and payload.min_heart_rate is None and payload.max_heart_rate is None:
        return None
    return HeartRateRecord(
        date=day,
        resting_heart_rate=_int(payload.resting_heart_rate),
        min_heart_rate=_int(payload.min_heart_rate),
        max_heart_rate=_int(payload.max_heart_rate),
    )
