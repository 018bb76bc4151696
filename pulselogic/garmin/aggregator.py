"""Multi-metric health data acquisition for one authenticated session.

The sleep payload is the primary source for three metrics (sleep, stress,
body battery).  Stress and body battery fall back to dedicated endpoints
only when the sleep payloads of the whole range produced nothing for them.
Activities and heart rate are independent families fetched alongside.

A failing call never fails the snapshot: it is logged and its metric stays
empty.  The call as a whole aborts only when *every* provider call failed
the same way, with 401/403 (``NotAuthenticated``) or on connectivity
(``ProviderUnavailable``).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Hashable, Iterable, Protocol, TypeVar

from pulselogic.garmin.dates import (
    activity_cutoff,
    format_date,
    parse_local_datetime,
    resolve_date_range,
)
from pulselogic.garmin.errors import NotAuthenticated, ProviderUnavailable
from pulselogic.garmin.models import (
    ActivityRecord,
    BodyBatteryRecord,
    HealthSnapshot,
    HeartRateRecord,
    SleepRecord,
    StressRecord,
)
from pulselogic.garmin.payloads import (
    ActivityPayload,
    BodyBatteryEventsPayload,
    BodyBatteryReport,
    DailySummaryPayload,
    HeartRatePayload,
    SleepPayload,
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
from pulselogic.garmin.provider import CallFailure, ProviderClient, classify_call_failure

logger = logging.getLogger("pulselogic.garmin.aggregator")

DEFAULT_DAYS = 7
MAX_DAYS = 180

#: Activities requested per day of range; the list endpoint is paged, not dated.
ACTIVITIES_PER_DAY = 3

RecordT = TypeVar("RecordT")


class ClientSource(Protocol):
    """Resolves a session handle to a live client (the auth orchestrator does)."""

    def client_for(self, session_handle: str | None) -> ProviderClient: ...


@dataclass
class _FetchStats:
    """Outcome counts of the provider calls made for one snapshot."""

    calls: int = 0
    failures: dict[CallFailure, int] = field(default_factory=dict)

    def record_failure(self, kind: CallFailure) -> None:
        self.failures[kind] = self.failures.get(kind, 0) + 1

    @property
    def failed(self) -> int:
        return sum(self.failures.values())

    def all_failed_with(self, kind: CallFailure) -> bool:
        return self.calls > 0 and self.failures.get(kind, 0) == self.calls


class HealthDataAggregator:
    """Builds a ``HealthSnapshot`` for the last N days of a session."""

    def __init__(self, sessions: ClientSource, max_days: int = MAX_DAYS) -> None:
        self._sessions = sessions
        self._max_days = max_days

    async def fetch(
        self,
        session_handle: str | None,
        days: int = DEFAULT_DAYS,
        today: date | None = None,
    ) -> HealthSnapshot:
        """Fetch every metric family for ``days`` dates ending today.

        Raises:
            NotAuthenticated:   Unknown session, or every call came back 401/403.
            ProviderUnavailable: Every call failed to reach Garmin.
            ValueError:          ``days`` outside ``1..max_days``.
        """
        if days > self._max_days:
            raise ValueError(f"days must be <= {self._max_days}, got {days}")

        client = self._sessions.client_for(session_handle)
        today = today or date.today()
        date_range, dates = resolve_date_range(days, today)
        stats = _FetchStats()

        logger.info("Fetching %d day(s) of Garmin data (%s to %s)", days, date_range.start, date_range.end)

        (sleep, stress, body_battery), activities, heart_rate = await asyncio.gather(
            self._sleep_family(client, dates, stats),
            self._activities(client, days, today, stats),
            self._heart_rate(client, dates, stats),
        )

        if stats.all_failed_with(CallFailure.UNAUTHORIZED):
            logger.warning("Every Garmin call was rejected as unauthorized")
            raise NotAuthenticated("Garmin session is no longer valid. Please log in again.")
        if stats.all_failed_with(CallFailure.UNAVAILABLE):
            logger.warning("Every Garmin call failed on connectivity")
            raise ProviderUnavailable()
        if stats.failed:
            logger.info("%d of %d Garmin call(s) failed; returning partial data", stats.failed, stats.calls)

        return HealthSnapshot(
            date_range=date_range,
            sleep=_by_date(sleep),
            stress=_by_date(stress),
            body_battery=_by_date(body_battery),
            activities=_unique_activities(activities),
            heart_rate=_by_date(heart_rate),
        )

    # ------------------------------------------------------------------
    # Families
    # ------------------------------------------------------------------

    async def _sleep_family(
        self, client: ProviderClient, dates: list[date], stats: _FetchStats
    ) -> tuple[list[SleepRecord], list[StressRecord], list[BodyBatteryRecord]]:
        payloads: dict[str, SleepPayload] = {}
        for day in dates:
            iso = format_date(day)
            raw = await _safe(stats, f"sleep {iso}", client.get_sleep(day))
            payload = parse_sleep_payload(raw)
            if payload is not None:
                payloads[iso] = payload
                logger.debug(
                    "Sleep %s: dto=%s bodyBatteryChange=%s avgSleepStress=%s",
                    iso,
                    payload.daily_sleep_dto is not None,
                    payload.body_battery_change,
                    payload.daily_sleep_dto.avg_sleep_stress if payload.daily_sleep_dto else None,
                )

        sleep = _collect(extract_sleep(iso, p) for iso, p in payloads.items())
        stress = _collect(extract_stress_from_sleep(iso, p) for iso, p in payloads.items())
        body_battery = _collect(extract_body_battery_from_sleep(iso, p) for iso, p in payloads.items())

        if not stress:
            logger.info("No stress in sleep payloads; falling back to daily summaries")
            stress = await self._stress_from_summaries(client, dates, stats)
        if not body_battery:
            logger.info("No body battery in sleep payloads; falling back to daily reports")
            body_battery = await self._body_battery_fallback(client, dates, stats)

        return sleep, stress, body_battery

    async def _stress_from_summaries(
        self, client: ProviderClient, dates: list[date], stats: _FetchStats
    ) -> list[StressRecord]:
        records: list[StressRecord] = []
        for day in dates:
            iso = format_date(day)
            raw = await _safe(stats, f"stress {iso}", client.get_daily_summary(day))
            record = extract_stress_from_summary(iso, parse_payload(DailySummaryPayload, raw))
            if record is not None:
                records.append(record)
        return records

    async def _body_battery_fallback(
        self, client: ProviderClient, dates: list[date], stats: _FetchStats
    ) -> list[BodyBatteryRecord]:
        start, end = dates[0], dates[-1]
        stats.calls += 1
        try:
            raw = await client.get_body_battery_reports(start, end)
        except Exception as exc:
            stats.record_failure(classify_call_failure(exc))
            logger.warning("Body battery reports %s..%s failed: %s", start, end, type(exc).__name__)
            logger.info("Falling back to per-day body battery events")
            return await self._body_battery_from_events(client, dates, stats)

        reports = parse_payload_list(BodyBatteryReport, raw)
        wanted = {format_date(d) for d in dates}
        return _collect(
            extract_body_battery_from_report(r) for r in reports if r.date in wanted
        )

    async def _body_battery_from_events(
        self, client: ProviderClient, dates: list[date], stats: _FetchStats
    ) -> list[BodyBatteryRecord]:
        records: list[BodyBatteryRecord] = []
        for day in dates:
            iso = format_date(day)
            raw = await _safe(stats, f"body battery events {iso}", client.get_body_battery_events(day))
            record = extract_body_battery_from_events(iso, parse_payload(BodyBatteryEventsPayload, raw))
            if record is not None:
                records.append(record)
        return records

    async def _activities(
        self, client: ProviderClient, days: int, today: date, stats: _FetchStats
    ) -> list[ActivityRecord]:
        raw = await _safe(stats, "activities", client.get_activities(0, days * ACTIVITIES_PER_DAY))
        cutoff = activity_cutoff(days, today)
        records: list[ActivityRecord] = []
        for payload in parse_payload_list(ActivityPayload, raw):
            started = parse_local_datetime(payload.start_time_local)
            if started is None or started < cutoff:
                continue
            record = extract_activity(payload)
            if record is not None:
                records.append(record)
        return records

    async def _heart_rate(
        self, client: ProviderClient, dates: list[date], stats: _FetchStats
    ) -> list[HeartRateRecord]:
        records: list[HeartRateRecord] = []
        for day in dates:
            iso = format_date(day)
            raw = await _safe(stats, f"heart rate {iso}", client.get_heart_rate(day))
            record = extract_heart_rate(iso, parse_payload(HeartRatePayload, raw))
            if record is not None:
                records.append(record)
        return records


async def _safe(stats: _FetchStats, label: str, call: Awaitable[Any]) -> Any:
    """Await one provider call; failures are counted and logged, never raised."""
    stats.calls += 1
    try:
        return await call
    except Exception as exc:
        stats.record_failure(classify_call_failure(exc))
        logger.warning("Garmin %s failed: %s", label, type(exc).__name__)
        return None


def _collect(records: Iterable[RecordT | None]) -> list[RecordT]:
    return [r for r in records if r is not None]


def _by_date(records: Iterable[RecordT]) -> tuple[RecordT, ...]:
    """Sort ascending by ``date``, keeping the first record seen per date."""
    unique: dict[str, RecordT] = {}
    for record in records:
        unique.setdefault(record.date, record)  # type: ignore[attr-defined]
    return tuple(unique[d] for d in sorted(unique))


def _unique_activities(records: Iterable[ActivityRecord]) -> tuple[ActivityRecord, ...]:
    unique: dict[Hashable, ActivityRecord] = {}
    for record in records:
        # Activities without an id are told apart by start time and name.
        key = record.activity_id or (record.start_time_local, record.activity_name)
        unique.setdefault(key, record)
    return tuple(sorted(unique.values(), key=lambda r: (r.start_time_local, r.activity_id)))
