"""Garmin Connect provider backed by the Garth library (unofficial API).

Garth is built on ``requests`` and blocks, so every call is pushed to a
worker thread with ``asyncio.to_thread``.  No developer account is needed;
this logs in with the user's regular Garmin Connect credentials.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any

import garth
from garth import sso
from garth.auth_tokens import OAuth1Token, OAuth2Token

from pulselogic.garmin.dates import format_date
from pulselogic.garmin.models import CredentialBundle, UserProfile

logger = logging.getLogger("pulselogic.garmin.garth_client")


class MfaPromptRequired(Exception):
    """Raised from inside Garth when a plain login hits the MFA code page."""


def _refuse_mfa_prompt() -> str:
    raise MfaPromptRequired("MFA verification code required")


def _plain(token: Any) -> dict[str, Any]:
    # Round-trip through JSON so datetimes become strings the token store can write.
    return json.loads(json.dumps(asdict(token), default=str))


@dataclass
class GarthMfaState:
    """Suspended Garth login parked at the MFA prompt."""

    client: garth.Client
    client_state: dict[str, Any] | None
    tokens: tuple[OAuth1Token, OAuth2Token] | None = None


class GarthClient:
    """ProviderClient over a logged-in ``garth.Client``."""

    def __init__(self, client: garth.Client) -> None:
        self._client = client
        self._profile: dict[str, Any] | None = None

    def export_tokens(self) -> tuple[dict[str, Any], dict[str, Any]]:
        return _plain(self._client.oauth1_token), _plain(self._client.oauth2_token)

    async def _get(self, path: str, **params: Any) -> Any:
        return await asyncio.to_thread(self._client.connectapi, path, params=params or None)

    async def _social_profile(self) -> dict[str, Any]:
        if self._profile is None:
            self._profile = await self._get("/userprofile-service/socialProfile") or {}
        return self._profile

    async def _display_name(self) -> str:
        profile = await self._social_profile()
        return profile.get("displayName") or profile.get("userName") or ""

    async def get_profile(self) -> UserProfile:
        profile = await self._social_profile()
        profile_id = profile.get("profileId")
        return UserProfile(
            display_name=profile.get("displayName"),
            full_name=profile.get("fullName"),
            profile_id=str(profile_id) if profile_id is not None else None,
        )

    async def get_sleep(self, day: date) -> Any:
        name = await self._display_name()
        return await self._get(
            f"/wellness-service/wellness/dailySleepData/{name}",
            date=format_date(day),
            nonSleepBufferMinutes=60,
        )

    async def get_daily_summary(self, day: date) -> Any:
        iso = format_date(day)
        return await self._get(f"/usersummary-service/usersummary/daily/{iso}", calendarDate=iso)

    async def get_body_battery_reports(self, start: date, end: date) -> Any:
        return await self._get(
            "/wellness-service/wellness/bodyBattery/reports/daily",
            startDate=format_date(start),
            endDate=format_date(end),
        )

    async def get_body_battery_events(self, day: date) -> Any:
        return await self._get(f"/wellness-service/wellness/bodyBattery/events/{format_date(day)}")

    async def get_activities(self, start: int, limit: int) -> Any:
        return await self._get(
            "/activitylist-service/activities/search/activities",
            start=start,
            limit=limit,
        )

    async def get_heart_rate(self, day: date) -> Any:
        name = await self._display_name()
        return await self._get(
            f"/wellness-service/wellness/dailyHeartRate/{name}",
            date=format_date(day),
        )


class GarthProvider:
    """GarminProvider using Garth's SSO flow."""

    def __init__(self, domain: str = "garmin.com") -> None:
        self._domain = domain

    def _new_client(self) -> garth.Client:
        return garth.Client(domain=self._domain)

    async def login(self, username: str, password: str) -> GarthClient:
        client = self._new_client()
        await asyncio.to_thread(client.login, username, password, prompt_mfa=_refuse_mfa_prompt)
        return GarthClient(client)

    async def start_mfa_login(self, username: str, password: str) -> GarthMfaState:
        client = self._new_client()
        result = await asyncio.to_thread(client.login, username, password, return_on_mfa=True)
        if isinstance(result, tuple) and result and result[0] == "needs_mfa":
            return GarthMfaState(client=client, client_state=result[1])
        # Garmin let this attempt through without a code.
        logger.info("MFA login completed without a code prompt")
        return GarthMfaState(client=client, client_state=None)

    async def verify_mfa_code(self, state: GarthMfaState, code: str) -> None:
        if state.client_state is None:
            return
        state.tokens = await asyncio.to_thread(sso.resume_login, state.client_state, code)

    async def complete_mfa_login(self, state: GarthMfaState) -> GarthClient:
        if state.tokens is not None:
            state.client.oauth1_token, state.client.oauth2_token = state.tokens
        return GarthClient(state.client)

    def from_tokens(self, bundle: CredentialBundle) -> GarthClient:
        client = self._new_client()
        client.oauth1_token = OAuth1Token(**bundle.primary)
        client.oauth2_token = OAuth2Token(**bundle.secondary)
        return GarthClient(client)
