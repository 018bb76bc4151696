"""Request and response bodies for the Garmin endpoints."""

from __future__ import annotations

from pydantic import ConfigDict, EmailStr, Field

from pulselogic.garmin.models import AuthResult, HealthSnapshot
from pulselogic.models.base import PulseLogicBase


# ---------- Requests ----------

class GarminLoginRequest(PulseLogicBase):
    # Passwords are taken verbatim.
    model_config = ConfigDict(str_strip_whitespace=False)

    username: EmailStr
    password: str = Field(min_length=1)


class MfaCodeRequest(PulseLogicBase):
    mfa_session_id: str = Field(min_length=1)
    code: str = Field(min_length=4, max_length=10)


class EmailRequest(PulseLogicBase):
    email: EmailStr


class LogoutRequest(PulseLogicBase):
    clear_stored_tokens: bool = False


class FetchDataRequest(PulseLogicBase):
    days: int = Field(default=7, ge=1, le=180)


# ---------- Auth responses ----------

class LoginData(PulseLogicBase):
    session_id: str | None = None
    is_authenticated: bool
    display_name: str | None = None
    user_id: str | None = None
    requires_mfa: bool | None = Field(default=None, alias="requiresMFA")
    mfa_session_id: str | None = None

    @classmethod
    def from_result(cls, result: AuthResult, session_id: str | None = None) -> LoginData:
        if result.requires_mfa:
            return cls(
                session_id=session_id,
                is_authenticated=False,
                requires_mfa=True,
                mfa_session_id=result.mfa_handle,
            )
        return cls(
            session_id=result.session_handle,
            is_authenticated=result.authenticated,
            display_name=result.display_name,
            user_id=result.user_id,
        )


class CanRestoreData(PulseLogicBase):
    can_restore: bool


class StatusData(PulseLogicBase):
    authenticated: bool


# ---------- Health snapshot ----------

class DateRangeOut(PulseLogicBase):
    start: str
    end: str


class SleepOut(PulseLogicBase):
    date: str
    sleep_time_seconds: int
    deep_sleep_seconds: int
    light_sleep_seconds: int
    rem_sleep_seconds: int
    awake_sleep_seconds: int
    sleep_score: int | None = None
    resting_heart_rate: int | None = None


class StressOut(PulseLogicBase):
    date: str
    overall_stress_level: int
    rest_stress_level: int
    low_stress_level: int
    medium_stress_level: int
    high_stress_level: int
    stress_qualifier: str


class BodyBatteryOut(PulseLogicBase):
    date: str
    charged: int
    drained: int
    start_level: int
    end_level: int
    highest_level: int
    lowest_level: int


class ActivityOut(PulseLogicBase):
    activity_id: int
    activity_name: str
    activity_type: str
    start_time_local: str
    duration: float
    distance: float | None = None
    calories: float
    average_hr: float | None = Field(default=None, alias="averageHR")
    max_hr: float | None = Field(default=None, alias="maxHR")
    average_speed: float | None = None


class HeartRateOut(PulseLogicBase):
    date: str
    resting_heart_rate: int
    min_heart_rate: int
    max_heart_rate: int


class HealthDataOut(PulseLogicBase):
    date_range: DateRangeOut
    sleep: list[SleepOut]
    stress: list[StressOut]
    body_battery: list[BodyBatteryOut]
    activities: list[ActivityOut]
    heart_rate: list[HeartRateOut]

    @classmethod
    def from_snapshot(cls, snapshot: HealthSnapshot) -> HealthDataOut:
        return cls.model_validate(snapshot, from_attributes=True)
