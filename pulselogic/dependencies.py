"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, Request

from pulselogic.config import Settings, get_settings
from pulselogic.garmin.service import GarminCore

SESSION_HEADER = "X-Garmin-Session"


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with; falls back to the environment."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_garmin_core(request: Request) -> GarminCore:
    """The process-wide core built in the application lifespan."""
    return request.app.state.garmin


async def get_session_handle(
    x_garmin_session: Annotated[str | None, Header(alias=SESSION_HEADER)] = None,
) -> str | None:
    return x_garmin_session or None


# Annotated shortcuts for route signatures
Core = Annotated[GarminCore, Depends(get_garmin_core)]
SessionHandle = Annotated[str | None, Depends(get_session_handle)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
