"""Tests for the GarminCore container: wiring, sweeping and shutdown."""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path

import pytest

from pulselogic.config import Settings
from pulselogic.garmin.models import utc_now
from pulselogic.garmin.service import GarminCore
from pulselogic.garmin.tests.conftest import TEST_EMAIL, TEST_PASSWORD, TEST_SECRET, FakeProvider
from pulselogic.garmin.token_store import FileTokenStore


def _core(tmp_path: Path, provider: FakeProvider, **kwargs) -> GarminCore:
    return GarminCore(provider, FileTokenStore(tmp_path / "tokens", TEST_SECRET), **kwargs)


class TestSweep:
    @pytest.mark.asyncio
    async def test_idle_sessions_are_evicted(self, tmp_path: Path, provider: FakeProvider) -> None:
        core = _core(tmp_path, provider, session_idle_ttl_seconds=3600)
        stale = await core.auth.login(TEST_EMAIL, TEST_PASSWORD)
        fresh = await core.auth.login("other@example.com", TEST_PASSWORD)
        core.sessions.get(stale.session_handle).last_used_at = utc_now() - timedelta(hours=2)

        await core.sweep_once()

        assert core.auth.status(stale.session_handle) is False
        assert core.auth.status(fresh.session_handle) is True
        await core.stop()

    @pytest.mark.asyncio
    async def test_idle_eviction_disabled_by_zero_ttl(self, tmp_path: Path, provider: FakeProvider) -> None:
        core = _core(tmp_path, provider, session_idle_ttl_seconds=0)
        result = await core.auth.login(TEST_EMAIL, TEST_PASSWORD)
        core.sessions.get(result.session_handle).last_used_at = utc_now() - timedelta(days=30)

        await core.sweep_once()

        assert core.auth.status(result.session_handle) is True
        await core.stop()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_stop_cancels_sweeper_and_pending_challenges(
        self, tmp_path: Path, provider: FakeProvider
    ) -> None:
        core = _core(tmp_path, provider)
        core.start()
        provider.login_error = Exception("MFA required")
        await core.auth.login(TEST_EMAIL, TEST_PASSWORD)
        assert len(core.mfa) == 1

        await core.stop()

        assert len(core.mfa) == 0

    @pytest.mark.asyncio
    async def test_from_settings_uses_given_provider(self, tmp_path: Path, provider: FakeProvider) -> None:
        settings = Settings(token_dir=str(tmp_path / "tokens"), token_encryption_secret=TEST_SECRET, max_days=30)
        core = GarminCore.from_settings(settings, provider=provider)

        assert core.provider is provider
        with pytest.raises(ValueError):
            await core.aggregator.fetch("any-handle", days=31)
        await core.stop()

    @pytest.mark.asyncio
    async def test_default_secret_is_flagged(
        self, tmp_path: Path, provider: FakeProvider, caplog: pytest.LogCaptureFixture
    ) -> None:
        settings = Settings(token_dir=str(tmp_path / "tokens"))
        with caplog.at_level(logging.WARNING, logger="pulselogic.garmin.service"):
            core = GarminCore.from_settings(settings, provider=provider)
        assert "TOKEN_ENCRYPTION_SECRET" in caplog.text
        await core.stop()
