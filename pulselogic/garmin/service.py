"""Process-wide container wiring the Garmin core components together.

One ``GarminCore`` is built per application in the FastAPI lifespan and
shared by every request through ``app.state``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from pulselogic.config import Settings
from pulselogic.garmin.aggregator import HealthDataAggregator
from pulselogic.garmin.auth import AuthOrchestrator
from pulselogic.garmin.mfa import MfaCoordinator
from pulselogic.garmin.provider import GarminProvider
from pulselogic.garmin.sessions import SessionRegistry
from pulselogic.garmin.token_store import FileTokenStore, TokenStore

logger = logging.getLogger("pulselogic.garmin.service")


class GarminCore:
    """Owns the token store, both registries, the orchestrator and the aggregator."""

    def __init__(
        self,
        provider: GarminProvider,
        token_store: TokenStore,
        *,
        mfa_ttl_seconds: float = 300,
        mfa_max_attempts: int = 3,
        sweep_interval_seconds: float = 60,
        session_idle_ttl_seconds: float = 0,
        max_days: int = 180,
    ) -> None:
        self.provider = provider
        self.token_store = token_store
        self.sessions = SessionRegistry()
        self.mfa = MfaCoordinator(provider, ttl_seconds=mfa_ttl_seconds, max_attempts=mfa_max_attempts)
        self.auth = AuthOrchestrator(provider, token_store, self.sessions, self.mfa)
        self.aggregator = HealthDataAggregator(self.auth, max_days=max_days)

        self._sweep_interval = sweep_interval_seconds
        self._session_idle_ttl = session_idle_ttl_seconds
        self._sweeper: asyncio.Task | None = None

    @classmethod
    def from_settings(cls, settings: Settings, provider: GarminProvider | None = None) -> GarminCore:
        if provider is None:
            from pulselogic.garmin.garth_client import GarthProvider

            provider = GarthProvider(domain=settings.garmin_domain)

        if settings.token_encryption_secret == Settings.model_fields["token_encryption_secret"].default:
            logger.warning("TOKEN_ENCRYPTION_SECRET is the development default; set it in production")

        return cls(
            provider,
            FileTokenStore(settings.token_dir, settings.token_encryption_secret),
            mfa_ttl_seconds=settings.mfa_challenge_ttl_seconds,
            mfa_max_attempts=settings.mfa_max_code_attempts,
            sweep_interval_seconds=settings.mfa_sweep_interval_seconds,
            session_idle_ttl_seconds=settings.session_idle_ttl_seconds,
            max_days=settings.max_days,
        )

    # ------------------------------------------------------------------
    # Background sweeping
    # ------------------------------------------------------------------

    async def sweep_once(self) -> None:
        """Expire stale MFA challenges and, if enabled, idle sessions."""
        await self.mfa.sweep()
        if self._session_idle_ttl > 0:
            self.sessions.evict_idle(timedelta(seconds=self._session_idle_ttl))

    async def _run_sweeper(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("Garmin sweep failed")

    def start(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._run_sweeper(), name="garmin-sweeper")
            logger.info("Garmin sweeper started (every %ss)", self._sweep_interval)

    async def stop(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        await self.mfa.close()
        logger.info("Garmin core stopped")
