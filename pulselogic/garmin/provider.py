"""Garmin Connect provider boundary.

* ``GarminProvider`` / ``ProviderClient``: the protocols the rest of the core
  is written against.  ``garth_client`` holds the production implementation;
  tests substitute a scripted fake.
* ``classify_login_failure``: the single place where a provider failure is
  mapped to "MFA required", "invalid credentials" or "provider unavailable".
"""

from __future__ import annotations

import asyncio
import enum
from datetime import date
from typing import Any, Protocol

from pulselogic.garmin.errors import MfaCodeRejected, ProviderUnavailable
from pulselogic.garmin.models import CredentialBundle, UserProfile


# ---------------------------------------------------------------------------
# Failure classification
# ---------------------------------------------------------------------------

#: Substrings (lower-case) that mark a login failure as an MFA prompt.  This
#: is a heuristic over the vendor's free-text errors, not a structured code.
MFA_INDICATORS: tuple[str, ...] = (
    "mfa",
    "ticket not found",
    "verification",
    "two-factor",
)


class LoginFailure(enum.Enum):
    MFA_REQUIRED = "mfa_required"
    INVALID_CREDENTIALS = "invalid_credentials"
    UNAVAILABLE = "unavailable"


class CallFailure(enum.Enum):
    UNAUTHORIZED = "unauthorized"
    UNAVAILABLE = "unavailable"
    OTHER = "other"


def failure_message(exc: BaseException) -> str:
    """Best-effort text of a provider error (Garth exceptions keep it in ``msg``)."""
    parts = [str(exc), str(getattr(exc, "msg", "") or ""), str(getattr(exc, "error", "") or "")]
    return " ".join(p for p in parts if p)


def failure_status(exc: BaseException) -> int | None:
    """HTTP status carried by ``exc`` or anything it wraps, if any."""
    seen: set[int] = set()
    current: Any = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        response = getattr(current, "response", None)
        status = getattr(response, "status_code", None)
        if isinstance(status, int):
            return status
        current = getattr(current, "error", None) or current.__cause__
    return None


def is_unavailable(exc: BaseException) -> bool:
    """True for connectivity problems and upstream 5xx/429 answers."""
    if isinstance(exc, ProviderUnavailable):
        return True
    status = failure_status(exc)
    if status is not None:
        return status >= 500 or status == 429
    return isinstance(exc, (OSError, asyncio.TimeoutError))


def classify_login_failure(exc: BaseException) -> LoginFailure:
    """Decide what a failed password login means.

    Called exactly once per failed login; callers branch on the result and
    never re-inspect the error.
    """
    message = failure_message(exc).lower()
    if any(indicator in message for indicator in MFA_INDICATORS):
        return LoginFailure.MFA_REQUIRED
    if is_unavailable(exc):
        return LoginFailure.UNAVAILABLE
    return LoginFailure.INVALID_CREDENTIALS


def is_code_rejection(exc: BaseException) -> bool:
    """A failed MFA code submission is a rejection unless the provider was unreachable."""
    if isinstance(exc, MfaCodeRejected):
        return True
    return not is_unavailable(exc)


def classify_call_failure(exc: BaseException) -> CallFailure:
    status = failure_status(exc)
    if status in (401, 403):
        return CallFailure.UNAUTHORIZED
    if is_unavailable(exc):
        return CallFailure.UNAVAILABLE
    return CallFailure.OTHER



# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class ProviderClient(Protocol):
    """An authenticated Garmin Connect connection."""

    def export_tokens(self) -> tuple[dict[str, Any], dict[str, Any]]: ...

    async def get_profile(self) -> UserProfile: ...

    async def get_sleep(self, day: date) -> Any: ...

    async def get_daily_summary(self, day: date) -> Any: ...

    async def get_body_battery_reports(self, start: date, end: date) -> Any: ...

    async def get_body_battery_events(self, day: date) -> Any: ...

    async def get_activities(self, start: int, limit: int) -> Any: ...

    async def get_heart_rate(self, day: date) -> Any: ...


class GarminProvider(Protocol):
    """Factory for authenticated clients.

    The MFA login is split in three steps so the caller can hold the
    continuation between two independent requests:

    1. ``start_mfa_login`` posts the credentials and stops at the code prompt
       (this is what makes Garmin send the code),
    2. ``verify_mfa_code`` submits a code and raises if it is rejected,
    3. ``complete_mfa_login`` finishes the token exchange.
    """

    async def login(self, username: str, password: str) -> ProviderClient: ...

    async def start_mfa_login(self, username: str, password: str) -> Any: ...

    async def verify_mfa_code(self, state: Any, code: str) -> None: ...

    async def complete_mfa_login(self, state: Any) -> ProviderClient: ...

    def from_tokens(self, bundle: CredentialBundle) -> ProviderClient: ...
