"""Calendar helpers for Garmin date-keyed endpoints."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range as ISO ``YYYY-MM-DD`` strings."""

    start: str
    end: str


def format_date(value: date) -> str:
    """Format a date as YYYY-MM-DD for the Garmin API."""
    return value.isoformat()


def resolve_date_range(days: int, today: date | None = None) -> tuple[DateRange, list[date]]:
    """Return the range and the list of dates for the last ``days`` days.

    The list includes today and is ordered oldest first, so ``days=7`` yields
    exactly seven dates ending today.

    Raises:
        ValueError: If ``days`` is not positive.
    """
    if days < 1:
        raise ValueError(f"days must be >= 1, got {days}")

    today = today or date.today()
    start = today - timedelta(days=days - 1)
    dates = [start + timedelta(days=i) for i in range(days)]
    return DateRange(start=format_date(start), end=format_date(today)), dates


def activity_cutoff(days: int, today: date | None = None) -> datetime:
    """Earliest local start time an activity may have to fall inside the window."""
    today = today or date.today()
    return datetime.combine(today - timedelta(days=days), datetime.min.time())


def parse_local_datetime(value: str | None) -> datetime | None:
    """Parse Garmin's ``startTimeLocal`` (``YYYY-MM-DD HH:MM:SS``) leniently."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        return None
