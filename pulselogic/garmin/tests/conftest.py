"""Shared fixtures for the Garmin core test suite.

Nothing here talks to Garmin.  ``FakeProvider`` and ``FakeClient`` stand in
for the Garth-backed implementation and are scripted per test: each
endpoint method looks its answer up in a dict keyed by ISO date, and an
``Exception`` instance stored as an answer is raised instead of returned.
"""

from __future__ import annotations

import asyncio
import json
from datetime import date
from pathlib import Path
from typing import Any

import pytest

from pulselogic.garmin.models import CredentialBundle, UserProfile
from pulselogic.garmin.sessions import SessionRegistry
from pulselogic.garmin.token_store import FileTokenStore

FIXTURES_DIR = Path(__file__).parent / "fixtures"

TEST_EMAIL = "runner@example.com"
TEST_PASSWORD = "correct horse battery staple"
TEST_SECRET = "test-encryption-secret"
TEST_TODAY = date(2026, 2, 23)
VALID_CODE = "123456"

PRIMARY_TOKEN = {
    "oauth_token": "oauth1-token",
    "oauth_token_secret": "oauth1-secret",
    "mfa_token": None,
    "mfa_expiration_timestamp": None,
    "domain": "garmin.com",
}
SECONDARY_TOKEN = {
    "scope": "CONNECT_READ CONNECT_WRITE",
    "jti": "jti-1",
    "token_type": "Bearer",
    "access_token": "oauth2-access",
    "refresh_token": "oauth2-refresh",
    "expires_in": 3600,
    "expires_at": 4102444800,
    "refresh_token_expires_in": 2592000,
    "refresh_token_expires_at": 4102444800,
}


def load_fixture(name: str) -> Any:
    """Load a JSON fixture file relative to the fixtures directory."""
    return json.loads((FIXTURES_DIR / name).read_text())


class HttpError(Exception):
    """Mimics a requests HTTPError: carries ``response.status_code``."""

    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(message or f"HTTP {status_code}")
        self.response = type("Response", (), {"status_code": status_code})()


# ---------------------------------------------------------------------------
# Fake provider
# ---------------------------------------------------------------------------


class FakeClient:
    """Scripted ProviderClient."""

    def __init__(
        self,
        profile: UserProfile | Exception | None = None,
        tokens: tuple[dict, dict] | None = None,
    ) -> None:
        self.profile = profile if profile is not None else UserProfile(
            display_name="runner42", full_name="Sam Runner", profile_id="90412233"
        )
        self.tokens = tokens or (dict(PRIMARY_TOKEN), dict(SECONDARY_TOKEN))
        self.sleep: dict[str, Any] = {}
        self.summaries: dict[str, Any] = {}
        self.body_battery_reports: Any = []
        self.body_battery_events: dict[str, Any] = {}
        self.activities: Any = []
        self.heart_rate: dict[str, Any] = {}
        self.calls: list[tuple[str, Any]] = []

    @staticmethod
    def _answer(value: Any) -> Any:
        if isinstance(value, Exception):
            raise value
        return value

    def export_tokens(self) -> tuple[dict, dict]:
        return self.tokens

    async def get_profile(self) -> UserProfile:
        self.calls.append(("profile", None))
        return self._answer(self.profile)

    async def get_sleep(self, day: date) -> Any:
        self.calls.append(("sleep", day.isoformat()))
        return self._answer(self.sleep.get(day.isoformat()))

    async def get_daily_summary(self, day: date) -> Any:
        self.calls.append(("summary", day.isoformat()))
        return self._answer(self.summaries.get(day.isoformat()))

    async def get_body_battery_reports(self, start: date, end: date) -> Any:
        self.calls.append(("bb_reports", (start.isoformat(), end.isoformat())))
        return self._answer(self.body_battery_reports)

    async def get_body_battery_events(self, day: date) -> Any:
        self.calls.append(("bb_events", day.isoformat()))
        return self._answer(self.body_battery_events.get(day.isoformat()))

    async def get_activities(self, start: int, limit: int) -> Any:
        self.calls.append(("activities", (start, limit)))
        return self._answer(self.activities)

    async def get_heart_rate(self, day: date) -> Any:
        self.calls.append(("heart_rate", day.isoformat()))
        return self._answer(self.heart_rate.get(day.isoformat()))

    def called(self, name: str) -> list[Any]:
        return [arg for call, arg in self.calls if call == name]


class FakeMfaState:
    def __init__(self, username: str) -> None:
        self.username = username
        self.verified = False


class FakeProvider:
    """Scripted GarminProvider.

    ``login_error`` is raised by ``login``; ``mfa_start_error`` by
    ``start_mfa_login``.  ``verify_mfa_code`` accepts ``valid_code`` only;
    ``verify_error`` overrides that with a fixed failure.  The two gates hold a
    call inside the provider until the test sets them.  ``restore_client``
    is what ``from_tokens`` hands back.
    """

    def __init__(self) -> None:
        self.client = FakeClient()
        self.restore_client: FakeClient | None = None
        self.login_error: Exception | None = None
        self.mfa_start_error: Exception | None = None
        self.verify_error: Exception | None = None
        self.valid_code = VALID_CODE
        self.verify_gate: asyncio.Event | None = None
        self.complete_gate: asyncio.Event | None = None
        self.logins: list[str] = []
        self.mfa_starts: list[str] = []
        self.codes_seen: list[str] = []
        self.completions = 0
        self.restored: list[CredentialBundle] = []

    async def login(self, username: str, password: str) -> FakeClient:
        self.logins.append(username)
        if self.login_error is not None:
            raise self.login_error
        return self.client

    async def start_mfa_login(self, username: str, password: str) -> FakeMfaState:
        self.mfa_starts.append(username)
        if self.mfa_start_error is not None:
            raise self.mfa_start_error
        return FakeMfaState(username)

    async def verify_mfa_code(self, state: FakeMfaState, code: str) -> None:
        self.codes_seen.append(code)
        if self.verify_gate is not None:
            await self.verify_gate.wait()
        if self.verify_error is not None:
            raise self.verify_error
        if code != self.valid_code:
            raise Exception("Invalid MFA code")
        state.verified = True

    async def complete_mfa_login(self, state: FakeMfaState) -> FakeClient:
        assert state.verified
        if self.complete_gate is not None:
            await self.complete_gate.wait()
        self.completions += 1
        return self.client

    def from_tokens(self, bundle: CredentialBundle) -> FakeClient:
        self.restored.append(bundle)
        return self.restore_client or self.client


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def client(provider: FakeProvider) -> FakeClient:
    return provider.client


@pytest.fixture
def token_store(tmp_path: Path) -> FileTokenStore:
    return FileTokenStore(tmp_path / "tokens", TEST_SECRET)


@pytest.fixture
def sessions() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def bundle() -> CredentialBundle:
    return CredentialBundle(
        user_id=TEST_EMAIL,
        primary=dict(PRIMARY_TOKEN),
        secondary=dict(SECONDARY_TOKEN),
    )


@pytest.fixture
def garmin_sleep_raw() -> dict:
    return load_fixture("garmin_sleep.json")


@pytest.fixture
def garmin_daily_summary_raw() -> dict:
    return load_fixture("garmin_daily_summary.json")


@pytest.fixture
def garmin_body_battery_events_raw() -> dict:
    return load_fixture("garmin_body_battery_events.json")


@pytest.fixture
def garmin_activities_raw() -> list:
    return load_fixture("garmin_activities.json")


@pytest.fixture
def garmin_heart_rate_raw() -> dict:
    return load_fixture("garmin_heart_rate.json")
