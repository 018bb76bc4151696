"""Canonical data models for the Garmin core.

The credential bundle is what the token store persists; the snapshot records
are what the aggregator returns.  Snapshot types are frozen: a snapshot is
immutable once handed back to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pulselogic.garmin.dates import DateRange


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Credentials / sessions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CredentialBundle:
    """The two long-lived provider tokens that allow session restoration.

    Attributes:
        user_id:   Owning user identifier (the Garmin login email).
        primary:   Provider OAuth1 token object, opaque to this package.
        secondary: Provider OAuth2 token object, opaque to this package.
    """

    user_id: str
    primary: dict[str, Any]
    secondary: dict[str, Any]

    def is_complete(self) -> bool:
        return bool(self.user_id and self.primary and self.secondary)

    def to_dict(self) -> dict[str, Any]:
        return {"user_id": self.user_id, "primary": self.primary, "secondary": self.secondary}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CredentialBundle:
        return cls(
            user_id=data["user_id"],
            primary=dict(data["primary"]),
            secondary=dict(data["secondary"]),
        )


@dataclass(frozen=True)
class UserProfile:
    """Subset of the Garmin social profile used to label a session."""

    display_name: str | None = None
    full_name: str | None = None
    profile_id: str | None = None


@dataclass
class Session:
    """A live, authenticated provider connection.

    Attributes:
        client:       Authenticated provider client (see ``provider.ProviderClient``).
        user_id:      Login email, used to re-persist rotated tokens.
        display_name: Name shown in the UI.
        profile_id:   Garmin profile id, if the provider returned one.
        created_at:   UTC creation time.
        last_used_at: UTC time of the last registry lookup (idle expiry).
    """

    client: Any
    user_id: str
    display_name: str
    profile_id: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    last_used_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a login, MFA submission or restore.

    Either ``authenticated`` is True and ``session_handle`` addresses a live
    session, or ``requires_mfa`` is True and ``mfa_handle`` must be passed to
    ``submit_mfa_code``.
    """

    authenticated: bool
    session_handle: str | None = None
    display_name: str | None = None
    user_id: str | None = None
    requires_mfa: bool = False
    mfa_handle: str | None = None
    profile_id: str | None = None


# ---------------------------------------------------------------------------
# Health snapshot records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SleepRecord:
    date: str
    sleep_time_seconds: int = 0
    deep_sleep_seconds: int = 0
    light_sleep_seconds: int = 0
    rem_sleep_seconds: int = 0
    awake_sleep_seconds: int = 0
    sleep_score: int | None = None
    resting_heart_rate: int | None = None


@dataclass(frozen=True)
class StressRecord:
    """Daily stress; the level fields hold durations when sourced from the daily summary."""

    date: str
    overall_stress_level: int = 0
    rest_stress_level: int = 0
    low_stress_level: int = 0
    medium_stress_level: int = 0
    high_stress_level: int = 0
    stress_qualifier: str = "unknown"


@dataclass(frozen=True)
class BodyBatteryRecord:
    date: str
    charged: int = 0
    drained: int = 0
    start_level: int = 0
    end_level: int = 0
    highest_level: int = 0
    lowest_level: int = 0


@dataclass(frozen=True)
class ActivityRecord:
    activity_id: int
    activity_name: str
    activity_type: str
    start_time_local: str
    duration: float = 0.0
    distance: float | None = None
    calories: float = 0.0
    average_hr: float | None = None
    max_hr: float | None = None
    average_speed: float | None = None

    @property
    def date(self) -> str:
        return self.start_time_local[:10]


@dataclass(frozen=True)
class HeartRateRecord:
    date: str
    resting_heart_rate: int = 0
    min_heart_rate: int = 0
    max_heart_rate: int = 0


@dataclass(frozen=True)
class HealthSnapshot:
    """Normalized multi-metric result of one acquisition call.

    Every sequence is sorted ascending by date with at most one record per
    date (activities: per activity id, ordered by start time).
    """

    date_range: DateRange
    sleep: tuple[SleepRecord, ...] = ()
    stress: tuple[StressRecord, ...] = ()
    body_battery: tuple[BodyBatteryRecord, ...] = ()
    activities: tuple[ActivityRecord, ...] = ()
    heart_rate: tuple[HeartRateRecord, ...] = ()
