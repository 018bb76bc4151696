"""Tests for date range resolution."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from pulselogic.garmin.dates import activity_cutoff, parse_local_datetime, resolve_date_range


class TestResolveDateRange:
    def test_seven_days_end_today(self) -> None:
        date_range, dates = resolve_date_range(7, today=date(2026, 2, 23))
        assert date_range.start == "2026-02-17"
        assert date_range.end == "2026-02-23"
        assert len(dates) == 7
        assert dates[0] == date(2026, 2, 17)
        assert dates[-1] == date(2026, 2, 23)

    def test_dates_are_oldest_first_and_contiguous(self) -> None:
        _, dates = resolve_date_range(30, today=date(2026, 3, 5))
        assert all((b - a).days == 1 for a, b in zip(dates, dates[1:]))

    def test_single_day_is_today(self) -> None:
        date_range, dates = resolve_date_range(1, today=date(2026, 2, 23))
        assert dates == [date(2026, 2, 23)]
        assert date_range.start == date_range.end == "2026-02-23"

    def test_crosses_year_boundary(self) -> None:
        date_range, _ = resolve_date_range(3, today=date(2026, 1, 1))
        assert date_range.start == "2025-12-30"

    @pytest.mark.parametrize("days", [0, -3])
    def test_rejects_non_positive_days(self, days: int) -> None:
        with pytest.raises(ValueError):
            resolve_date_range(days)


class TestActivityHelpers:
    def test_cutoff_is_midnight_days_ago(self) -> None:
        assert activity_cutoff(7, today=date(2026, 2, 23)) == datetime(2026, 2, 16)

    def test_parse_garmin_local_time(self) -> None:
        assert parse_local_datetime("2026-02-22 07:02:11") == datetime(2026, 2, 22, 7, 2, 11)

    @pytest.mark.parametrize("value", [None, "", "yesterday"])
    def test_parse_garbage_is_none(self, value: str | None) -> None:
        assert parse_local_datetime(value) is None
