"""Garmin authentication orchestration: password login, MFA, token restore.

Every successful path ends in ``_establish``: persist the (possibly rotated)
credential bundle, then register the session.  A live handle sent by the
caller, or else the live handle already bound to the same account, is
rebound to the new session instead of minting a second one.
"""

from __future__ import annotations

import logging

from pulselogic.garmin.errors import (
    InvalidCredentials,
    NoStoredSession,
    NotAuthenticated,
    ProviderUnavailable,
)
from pulselogic.garmin.mfa import MfaCoordinator
from pulselogic.garmin.models import AuthResult, CredentialBundle, Session, UserProfile
from pulselogic.garmin.provider import (
    GarminProvider,
    LoginFailure,
    ProviderClient,
    classify_login_failure,
    failure_message,
)
from pulselogic.garmin.sessions import SessionRegistry
from pulselogic.garmin.token_store import TokenStore

logger = logging.getLogger("pulselogic.garmin.auth")


class AuthOrchestrator:
    """Drives login, MFA submission and restore against the provider."""

    def __init__(
        self,
        provider: GarminProvider,
        token_store: TokenStore,
        sessions: SessionRegistry,
        mfa: MfaCoordinator,
    ) -> None:
        self._provider = provider
        self._tokens = token_store
        self._sessions = sessions
        self._mfa = mfa

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def login(
        self, username: str, password: str, session_handle: str | None = None
    ) -> AuthResult:
        """Try a direct login; fall back to an MFA challenge when Garmin asks for a code."""
        try:
            client = await self._provider.login(username, password)
        except Exception as exc:
            failure = classify_login_failure(exc)
            if failure is LoginFailure.MFA_REQUIRED:
                mfa_handle = await self._mfa.begin_challenge(username, password)
                return AuthResult(authenticated=False, requires_mfa=True, mfa_handle=mfa_handle)
            if failure is LoginFailure.UNAVAILABLE:
                logger.warning("Garmin unreachable during login: %s", type(exc).__name__)
                raise ProviderUnavailable() from exc
            logger.info("Garmin login rejected")
            raise InvalidCredentials(f"Garmin login failed: {failure_message(exc)}") from exc

        profile = await self._profile_or_default(client)
        return self._establish(client, username, profile, session_handle)

    async def submit_mfa_code(
        self, mfa_handle: str, code: str, session_handle: str | None = None
    ) -> AuthResult:
        username, client = await self._mfa.submit_code(mfa_handle, code)
        profile = await self._profile_or_default(client)
        return self._establish(client, username, profile, session_handle)

    async def restore(self, user_id: str, session_handle: str | None = None) -> AuthResult:
        """Rebuild a session from stored tokens; fail closed if they no longer work."""
        bundle = self._tokens.load(user_id)
        if bundle is None:
            raise NoStoredSession()

        try:
            client = self._provider.from_tokens(bundle)
            # One authenticated round-trip proves the tokens are live.
            profile = await client.get_profile()
        except Exception as exc:
            logger.info("Stored Garmin session is no longer valid; deleting tokens")
            self._tokens.delete(user_id)
            raise NoStoredSession(f"Session restore failed: {failure_message(exc)}") from exc

        return self._establish(client, user_id, profile, session_handle)

    def logout(self, session_handle: str | None, clear_stored_tokens: bool = False) -> None:
        session = self._sessions.remove(session_handle)
        if session is None:
            return
        if clear_stored_tokens:
            self._tokens.delete(session.user_id)
            logger.info("Logged out and cleared stored tokens")
        else:
            logger.info("Logged out")

    def status(self, session_handle: str | None) -> bool:
        return self._sessions.get(session_handle) is not None

    def can_restore(self, user_id: str) -> bool:
        return self._tokens.exists(user_id)

    def client_for(self, session_handle: str | None) -> ProviderClient:
        session = self._sessions.get(session_handle)
        if session is None:
            raise NotAuthenticated()
        return session.client

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _profile_or_default(self, client: ProviderClient) -> UserProfile:
        try:
            return await client.get_profile()
        except Exception as exc:
            logger.warning("Could not fetch Garmin profile after login: %s", type(exc).__name__)
            return UserProfile()

    def _persist(self, user_id: str, client: ProviderClient) -> None:
        try:
            primary, secondary = client.export_tokens()
        except Exception as exc:
            logger.error("Could not export Garmin tokens: %s", type(exc).__name__)
            return
        self._tokens.save(user_id, CredentialBundle(user_id=user_id, primary=primary, secondary=secondary))

    def _establish(
        self,
        client: ProviderClient,
        user_id: str,
        profile: UserProfile,
        session_handle: str | None,
    ) -> AuthResult:
        self._persist(user_id, client)

        display_name = profile.display_name or profile.full_name or user_id
        session = Session(
            client=client,
            user_id=user_id,
            display_name=display_name,
            profile_id=profile.profile_id,
        )
        if session_handle and session_handle in self._sessions:
            handle = session_handle
        else:
            handle = self._sessions.handle_for(user_id) or self._sessions.create()
        self._sessions.put(handle, session)

        return AuthResult(
            authenticated=True,
            session_handle=handle,
            display_name=display_name,
            user_id=user_id,
            profile_id=profile.profile_id,
        )
