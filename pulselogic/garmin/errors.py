"""Error taxonomy for the Garmin authentication and data core.

Every error carries a stable ``code`` and the HTTP ``status_code`` the API
layer answers with.  "MFA required" is deliberately absent: it is a normal
login outcome (``AuthResult.requires_mfa``), not a failure.
"""

from __future__ import annotations


class GarminCoreError(Exception):
    """Base class for all errors raised by the Garmin core."""

    code: str = "garmin_error"
    status_code: int = 500
    default_message: str = "Garmin request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, "code": self.code}


class InvalidCredentials(GarminCoreError):
    """The provider rejected the username/password pair."""

    code = "invalid_credentials"
    status_code = 401
    default_message = "Garmin login failed: invalid credentials"


class MfaChallengeNotFound(GarminCoreError):
    """Unknown, expired or already-consumed MFA challenge handle."""

    code = "mfa_challenge_not_found"
    status_code = 410
    default_message = "MFA session expired or not found. Please try logging in again."


class MfaCodeRejected(GarminCoreError):
    """The provider rejected the submitted MFA code."""

    code = "mfa_code_rejected"
    status_code = 401
    default_message = "MFA code was rejected. Please try again."

    def __init__(self, message: str | None = None, attempts_left: int = 0) -> None:
        super().__init__(message)
        self.attempts_left = attempts_left

    def to_dict(self) -> dict:
        return {**super().to_dict(), "attemptsLeft": self.attempts_left}


class NotAuthenticated(GarminCoreError):
    """No live session exists for the given session handle."""

    code = "not_authenticated"
    status_code = 401
    default_message = "Not authenticated. Please login first."


class NoStoredSession(GarminCoreError):
    """Restore was attempted with no (or invalid) persisted tokens."""

    code = "no_stored_session"
    status_code = 404
    default_message = "No stored session found"


class ProviderUnavailable(GarminCoreError):
    """Network or upstream failure unrelated to the user's credentials."""

    code = "provider_unavailable"
    status_code = 502
    default_message = "Garmin Connect is unavailable. Please try again later."
