"""Health check endpoint, public."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from pulselogic.dependencies import AppSettings, Core

router = APIRouter(tags=["system"])


@router.get("/health")
async def health_check(settings: AppSettings, core: Core) -> dict:
    """Liveness probe. Returns 200 if the API process is up."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "activeSessions": len(core.sessions),
        "pendingMfaChallenges": len(core.mfa),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
