"""Tests for payload parsing and per-metric extraction."""

from __future__ import annotations

from pulselogic.garmin.payloads import (
    ActivityPayload,
    BodyBatteryEventsPayload,
    BodyBatteryReport,
    DailySummaryPayload,
    HeartRatePayload,
    extract_activity,
    extract_body_battery_from_events,
    extract_body_battery_from_report,
    extract_body_battery_from_sleep,
    extract_heart_rate,
    extract_sleep,
    extract_stress_from_sleep,
    extract_stress_from_summary,
    parse_payload,
    parse_payload_list,
    parse_sleep_payload,
)

DAY = "2026-02-23"


class TestSleepPayload:
    def test_sleep_record(self, garmin_sleep_raw: dict) -> None:
        record = extract_sleep(DAY, parse_sleep_payload(garmin_sleep_raw))
        assert record.date == DAY
        assert record.sleep_time_seconds == 26940
        assert record.deep_sleep_seconds == 5220
        assert record.rem_sleep_seconds == 6120
        assert record.sleep_score == 84
        assert record.resting_heart_rate == 48

    def test_stress_from_sleep(self, garmin_sleep_raw: dict) -> None:
        record = extract_stress_from_sleep(DAY, parse_sleep_payload(garmin_sleep_raw))
        assert record.overall_stress_level == 17
        assert record.stress_qualifier == "EXCELLENT"
        assert record.high_stress_level == 0

    def test_body_battery_from_sleep_ignores_zero_samples(self, garmin_sleep_raw: dict) -> None:
        record = extract_body_battery_from_sleep(DAY, parse_sleep_payload(garmin_sleep_raw))
        assert record.charged == 62
        assert record.start_level == 21
        assert record.end_level == 83
        assert record.highest_level == 83
        assert record.lowest_level == 21

    def test_body_battery_change_without_samples(self) -> None:
        record = extract_body_battery_from_sleep(DAY, parse_sleep_payload({"bodyBatteryChange": 40}))
        assert record.charged == 40
        assert record.start_level == record.end_level == 0

    def test_missing_dto_yields_only_body_battery(self, garmin_sleep_raw: dict) -> None:
        del garmin_sleep_raw["dailySleepDTO"]
        payload = parse_sleep_payload(garmin_sleep_raw)
        assert extract_sleep(DAY, payload) is None
        assert extract_stress_from_sleep(DAY, payload) is None
        assert extract_body_battery_from_sleep(DAY, payload) is not None

    def test_malformed_dto_does_not_block_body_battery(self, garmin_sleep_raw: dict) -> None:
        garmin_sleep_raw["dailySleepDTO"]["sleepTimeSeconds"] = "a lot"
        payload = parse_sleep_payload(garmin_sleep_raw)
        assert extract_sleep(DAY, payload) is None
        assert extract_body_battery_from_sleep(DAY, payload).charged == 62

    def test_no_stress_without_avg_sleep_stress(self, garmin_sleep_raw: dict) -> None:
        del garmin_sleep_raw["dailySleepDTO"]["avgSleepStress"]
        assert extract_stress_from_sleep(DAY, parse_sleep_payload(garmin_sleep_raw)) is None

    def test_empty_payload(self) -> None:
        assert parse_sleep_payload({}) is None
        assert parse_sleep_payload(None) is None
        assert extract_sleep(DAY, None) is None


class TestFallbackPayloads:
    def test_stress_from_summary_uses_average_when_overall_missing(self, garmin_daily_summary_raw: dict) -> None:
        record = extract_stress_from_summary(DAY, parse_payload(DailySummaryPayload, garmin_daily_summary_raw))
        assert record.overall_stress_level == 31
        assert record.rest_stress_level == 31260
        assert record.high_stress_level == 1260
        assert record.stress_qualifier == "BALANCED"

    def test_stress_from_summary_prefers_overall(self) -> None:
        payload = parse_payload(DailySummaryPayload, {"overallStressLevel": 44, "avgStressLevel": 20})
        assert extract_stress_from_summary(DAY, payload).overall_stress_level == 44

    def test_summary_without_stress_is_none(self) -> None:
        payload = parse_payload(DailySummaryPayload, {"totalSteps": 9000})
        assert extract_stress_from_summary(DAY, payload) is None

    def test_body_battery_report(self) -> None:
        reports = parse_payload_list(
            BodyBatteryReport,
            [{"date": DAY, "charged": 55, "drained": 61}, {"charged": 3}, "junk"],
        )
        records = [extract_body_battery_from_report(r) for r in reports]
        assert records[0].charged == 55
        assert records[0].drained == 61
        assert records[1] is None

    def test_body_battery_events_upper_case_stats(self, garmin_body_battery_events_raw: dict) -> None:
        record = extract_body_battery_from_events(
            DAY, parse_payload(BodyBatteryEventsPayload, garmin_body_battery_events_raw)
        )
        assert (record.charged, record.drained) == (58, 64)
        assert (record.start_level, record.end_level) == (33, 27)
        assert (record.highest_level, record.lowest_level) == (91, 22)

    def test_body_battery_events_camel_case_stats(self) -> None:
        raw = {"bodyBatteryStatList": [{"statsType": "charged", "statsValue": 12}, {"statsType": "highest", "statsValue": 70}]}
        record = extract_body_battery_from_events(DAY, parse_payload(BodyBatteryEventsPayload, raw))
        assert record.charged == 12
        assert record.highest_level == 70
        assert record.drained == 0


class TestActivityAndHeartRate:
    def test_activity(self, garmin_activities_raw: list) -> None:
        payloads = parse_payload_list(ActivityPayload, garmin_activities_raw)
        record = extract_activity(payloads[0])
        assert record.activity_id == 14122448301
        assert record.activity_type == "running"
        assert record.average_hr == 151.0
        assert record.date == "2026-02-22"

    def test_activity_defaults(self) -> None:
        record = extract_activity(ActivityPayload(start_time_local="2026-02-21 06:00:00"))
        assert record.activity_name == "Unnamed Activity"
        assert record.activity_type == "unknown"
        assert record.distance is None

    def test_activity_without_start_is_dropped(self) -> None:
        assert extract_activity(ActivityPayload(activity_id=1)) is None

    def test_heart_rate(self, garmin_heart_rate_raw: dict) -> None:
        record = extract_heart_rate(DAY, parse_payload(HeartRatePayload, garmin_heart_rate_raw))
        assert (record.resting_heart_rate, record.min_heart_rate, record.max_heart_rate) == (48, 46, 171)

    def test_heart_rate_without_values_is_none(self) -> None:
        assert extract_heart_rate(DAY, parse_payload(HeartRatePayload, {"calendarDate": DAY})) is None
