"""Garmin Connect authentication and health data core.

Logs users in (including the two-step MFA flow), keeps their provider
tokens encrypted at rest for later restore, and assembles a normalized
multi-day health snapshot from several Garmin Connect endpoints.

Core modules:
    token_store  Encrypted per-user credential bundles on disk
    sessions     In-memory session handle registry
    mfa          MFA challenge coordination across two requests
    auth         Login / MFA / restore / logout orchestration
    aggregator   Multi-metric snapshot with per-metric fallbacks
    provider     Provider protocols and failure classification
    garth_client Garth-backed production provider
    payloads     Typed endpoint payloads and record extraction
    service      GarminCore container and background sweeper
"""

from pulselogic.garmin.aggregator import HealthDataAggregator
from pulselogic.garmin.auth import AuthOrchestrator
from pulselogic.garmin.errors import (
    GarminCoreError,
    InvalidCredentials,
    MfaChallengeNotFound,
    MfaCodeRejected,
    NoStoredSession,
    NotAuthenticated,
    ProviderUnavailable,
)
from pulselogic.garmin.mfa import MfaCoordinator
from pulselogic.garmin.models import AuthResult, CredentialBundle, HealthSnapshot
from pulselogic.garmin.sessions import SessionRegistry
from pulselogic.garmin.token_store import FileTokenStore

__all__ = [
    "AuthOrchestrator",
    "AuthResult",
    "CredentialBundle",
    "FileTokenStore",
    "GarminCoreError",
    "HealthDataAggregator",
    "HealthSnapshot",
    "InvalidCredentials",
    "MfaChallengeNotFound",
    "MfaCodeRejected",
    "MfaCoordinator",
    "NoStoredSession",
    "NotAuthenticated",
    "ProviderUnavailable",
    "SessionRegistry",
]
