"""MFA challenge coordination across two independent requests.

A login that needs a verification code cannot finish inside the request
that started it.  ``begin_challenge`` launches the provider login as an
``asyncio.Task`` (the continuation) and returns a handle straight away; the
task posts the credentials, which makes Garmin send the code, and then
waits on a per-challenge queue.  ``submit_code`` hands the code to that task
together with a future the task resolves once the provider accepts or
rejects the code.  Only after acceptance does the caller await the rest of
the continuation (the token exchange), so a wrong code never hangs it.

Challenge lifecycle::

    PENDING --submit--> COMPLETING --accepted--> RESOLVED (removed)
       ^                    |
       +----wrong code------+ (attempts left)
                            +--budget spent / error--> FAILED (removed)
    PENDING --ttl elapsed--> EXPIRED (removed by the sweep)
"""

from __future__ import annotations

import asyncio
import enum
import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Callable

from pulselogic.garmin.errors import (
    GarminCoreError,
    InvalidCredentials,
    MfaChallengeNotFound,
    MfaCodeRejected,
    ProviderUnavailable,
)
from pulselogic.garmin.provider import (
    GarminProvider,
    ProviderClient,
    is_code_rejection,
    is_unavailable,
)

logger = logging.getLogger("pulselogic.garmin.mfa")

DEFAULT_CHALLENGE_TTL_SECONDS = 5 * 60
DEFAULT_MAX_CODE_ATTEMPTS = 3


class ChallengeState(enum.Enum):
    PENDING = "pending"
    COMPLETING = "completing"
    RESOLVED = "resolved"
    FAILED = "failed"
    EXPIRED = "expired"


@dataclass
class PendingChallenge:
    """One in-flight MFA code exchange.

    Attributes:
        handle:     Opaque challenge handle returned to the caller.
        username:   Login email; becomes the credential bundle key.
        password:   Held in memory only, for the lifetime of the challenge.
        created_at: Monotonic creation time, drives expiry.
        state:      Current ``ChallengeState``.
        attempts:   Rejected codes so far.
        codes:      Queue of ``(code, verdict future)`` consumed by the task.
        task:       The suspended login continuation.
    """

    handle: str
    username: str
    password: str = field(repr=False)
    created_at: float
    state: ChallengeState = ChallengeState.PENDING
    attempts: int = 0
    codes: asyncio.Queue = field(default_factory=asyncio.Queue, repr=False)
    task: asyncio.Task | None = field(default=None, repr=False)


class MfaCoordinator:
    """Owns every pending challenge and its continuation task."""

    def __init__(
        self,
        provider: GarminProvider,
        ttl_seconds: float = DEFAULT_CHALLENGE_TTL_SECONDS,
        max_attempts: int = DEFAULT_MAX_CODE_ATTEMPTS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._ttl = ttl_seconds
        self._max_attempts = max(1, max_attempts)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._challenges: dict[str, PendingChallenge] = {}

    # ------------------------------------------------------------------
    # Continuation
    # ------------------------------------------------------------------

    async def _continuation(self, challenge: PendingChallenge) -> ProviderClient:
        state = await self._provider.start_mfa_login(challenge.username, challenge.password)
        logger.info("MFA challenge %s is waiting for a code", _short(challenge.handle))

        while True:
            code, verdict = await challenge.codes.get()
            try:
                await self._provider.verify_mfa_code(state, code)
            except Exception as exc:
                if not verdict.done():
                    verdict.set_exception(exc)
                if is_code_rejection(exc):
                    continue
                raise
            if not verdict.done():
                verdict.set_result(None)
            return await self._provider.complete_mfa_login(state)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def begin_challenge(self, username: str, password: str) -> str:
        """Start the MFA login in the background and return its handle."""
        handle = secrets.token_urlsafe(24)
        challenge = PendingChallenge(
            handle=handle,
            username=username,
            password=password,
            created_at=self._clock(),
        )

        async with self._lock:
            superseded = [
                c for c in self._challenges.values()
                if c.username.lower() == username.lower() and c.state is ChallengeState.PENDING
            ]
            for old in superseded:
                self._discard(old, ChallengeState.FAILED)
            challenge.task = asyncio.create_task(
                self._continuation(challenge), name=f"mfa-login-{_short(handle)}"
            )
            challenge.task.add_done_callback(_log_outcome)
            self._challenges[handle] = challenge

        if superseded:
            logger.info("Superseded %d pending MFA challenge(s) for the same account", len(superseded))
        logger.info("MFA required, started challenge %s", _short(handle))
        return handle

    async def submit_code(self, handle: str, code: str) -> tuple[str, ProviderClient]:
        """Submit a verification code.

        Returns:
            ``(username, client)`` once the provider accepted the code and the
            login finished.

        Raises:
            MfaChallengeNotFound: Unknown, expired or busy challenge handle.
            MfaCodeRejected:      Wrong code; retry unless ``attempts_left`` is 0.
            InvalidCredentials:   The background login failed on the password.
            ProviderUnavailable:  Garmin could not be reached.
        """
        async with self._lock:
            challenge = self._challenges.get(handle)
            if challenge is None or challenge.state is not ChallengeState.PENDING:
                raise MfaChallengeNotFound()
            if self._is_expired(challenge):
                self._discard(challenge, ChallengeState.EXPIRED)
                raise MfaChallengeNotFound()
            challenge.state = ChallengeState.COMPLETING

        try:
            return await self._exchange(challenge, code)
        except asyncio.CancelledError:
            # Caller went away mid-exchange; a COMPLETING entry would never be swept.
            if challenge.state is ChallengeState.COMPLETING:
                self._abandon(challenge)
            raise

    async def _exchange(self, challenge: PendingChallenge, code: str) -> tuple[str, ProviderClient]:
        task = challenge.task
        assert task is not None
        verdict: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        challenge.codes.put_nowait((code, verdict))

        await asyncio.wait({verdict, task}, return_when=asyncio.FIRST_COMPLETED)

        if not verdict.done():
            # The continuation died before it could look at the code.
            await self._fail(challenge)
            raise _login_error(task.exception() if not task.cancelled() else None)

        rejection = verdict.exception()
        if rejection is not None:
            if is_code_rejection(rejection):
                raise await self._reject(challenge)
            await self._fail(challenge)
            raise _login_error(rejection)

        try:
            client = await task
        except Exception as exc:
            await self._fail(challenge)
            raise _login_error(exc) from exc

        async with self._lock:
            challenge.state = ChallengeState.RESOLVED
            self._challenges.pop(challenge.handle, None)
        challenge.password = ""
        logger.info("MFA challenge %s resolved", _short(challenge.handle))
        return challenge.username, client

    async def cancel(self, handle: str) -> bool:
        async with self._lock:
            challenge = self._challenges.get(handle)
            if challenge is None or challenge.state is ChallengeState.COMPLETING:
                return False
            self._discard(challenge, ChallengeState.FAILED)
            return True

    async def sweep(self) -> list[str]:
        """Expire PENDING challenges past their TTL.  COMPLETING ones are left alone."""
        async with self._lock:
            expired = [
                c for c in self._challenges.values()
                if c.state is ChallengeState.PENDING and self._is_expired(c)
            ]
            for challenge in expired:
                self._discard(challenge, ChallengeState.EXPIRED)
        if expired:
            logger.info("Expired %d MFA challenge(s)", len(expired))
        return [c.handle for c in expired]

    async def close(self) -> None:
        """Cancel every outstanding challenge (application shutdown)."""
        async with self._lock:
            for challenge in list(self._challenges.values()):
                self._discard(challenge, ChallengeState.FAILED)

    def state_of(self, handle: str) -> ChallengeState | None:
        challenge = self._challenges.get(handle)
        return challenge.state if challenge else None

    def __len__(self) -> int:
        return len(self._challenges)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _is_expired(self, challenge: PendingChallenge) -> bool:
        return self._clock() - challenge.created_at > self._ttl

    def _discard(self, challenge: PendingChallenge, final: ChallengeState) -> None:
        """Remove a challenge and stop its task.  Caller holds the lock."""
        challenge.state = final
        challenge.password = ""
        self._challenges.pop(challenge.handle, None)
        task = challenge.task
        if task is None:
            return
        if task.done():
            if not task.cancelled():
                task.exception()  # mark retrieved
        else:
            task.cancel()

    def _abandon(self, challenge: PendingChallenge) -> None:
        """Drop a challenge whose submitter was cancelled mid-exchange.

        Runs without awaiting the lock: ``_discard`` never yields, so nothing
        can interleave, and a second cancellation cannot cut it short.
        """
        self._discard(challenge, ChallengeState.FAILED)
        logger.info("MFA challenge %s abandoned by its caller", _short(challenge.handle))

    async def _fail(self, challenge: PendingChallenge) -> None:
        async with self._lock:
            self._discard(challenge, ChallengeState.FAILED)
        logger.info("MFA challenge %s failed", _short(challenge.handle))

    async def _reject(self, challenge: PendingChallenge) -> MfaCodeRejected:
        async with self._lock:
            challenge.attempts += 1
            attempts_left = self._max_attempts - challenge.attempts
            if attempts_left <= 0:
                self._discard(challenge, ChallengeState.FAILED)
            else:
                challenge.state = ChallengeState.PENDING

        if attempts_left <= 0:
            logger.info("MFA challenge %s failed after %d wrong code(s)", _short(challenge.handle), challenge.attempts)
            return MfaCodeRejected(
                "MFA code was rejected too many times. Please log in again.",
                attempts_left=0,
            )
        logger.info("MFA code rejected for challenge %s (%d attempt(s) left)", _short(challenge.handle), attempts_left)
        return MfaCodeRejected(attempts_left=attempts_left)


def _short(handle: str) -> str:
    return handle[:8]


def _log_outcome(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.info("MFA login continuation ended with %s", type(exc).__name__)


def _login_error(exc: BaseException | None) -> GarminCoreError:
    if isinstance(exc, GarminCoreError):
        return exc
    if exc is None:
        return ProviderUnavailable("MFA login was interrupted")
    if is_unavailable(exc):
        return ProviderUnavailable()
    return InvalidCredentials(f"MFA verification failed: {exc}")


