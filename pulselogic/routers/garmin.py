"""Garmin Connect endpoints: login, MFA, session restore and health data.

The session handle travels in the ``X-Garmin-Session`` header.  Core errors
(``GarminCoreError``) are turned into JSON by the app-level handler in
``pulselogic.main``, so the handlers here only deal with the happy path and
the one soft failure (restore without usable tokens).
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from pulselogic.dependencies import AppSettings, Core, SessionHandle
from pulselogic.garmin.errors import NoStoredSession
from pulselogic.models.base import ApiResponse
from pulselogic.models.garmin import (
    CanRestoreData,
    EmailRequest,
    FetchDataRequest,
    GarminLoginRequest,
    HealthDataOut,
    LoginData,
    LogoutRequest,
    MfaCodeRequest,
    StatusData,
)

router = APIRouter(prefix="/garmin", tags=["garmin"])
logger = logging.getLogger("pulselogic.routers.garmin")


@router.post("/login", response_model=ApiResponse[LoginData], response_model_exclude_none=True)
async def login(body: GarminLoginRequest, core: Core, session: SessionHandle) -> Any:
    """Authenticate with Garmin Connect; answers with ``mfaSessionId`` when a code is needed."""
    result = await core.auth.login(body.username, body.password, session_handle=session)
    return ApiResponse(data=LoginData.from_result(result, session_id=session))


@router.post("/mfa", response_model=ApiResponse[LoginData], response_model_exclude_none=True)
async def submit_mfa(body: MfaCodeRequest, core: Core, session: SessionHandle) -> Any:
    result = await core.auth.submit_mfa_code(body.mfa_session_id, body.code, session_handle=session)
    return ApiResponse(data=LoginData.from_result(result))


@router.post("/restore", response_model=ApiResponse[LoginData], response_model_exclude_none=True)
async def restore(body: EmailRequest, core: Core, session: SessionHandle) -> Any:
    """Restore a session from stored tokens, no password or MFA needed.

    A missing or dead token bundle is reported with ``success: false`` and
    HTTP 200 so the client can fall back to the login form.
    """
    try:
        result = await core.auth.restore(body.email, session_handle=session)
    except NoStoredSession as exc:
        return ApiResponse(success=False, error=exc.message)
    return ApiResponse(data=LoginData.from_result(result))


@router.post("/can-restore", response_model=ApiResponse[CanRestoreData])
async def can_restore(body: EmailRequest, core: Core) -> Any:
    return ApiResponse(data=CanRestoreData(can_restore=core.auth.can_restore(body.email)))


@router.post("/logout", response_model=ApiResponse[None], response_model_exclude_none=True)
async def logout(core: Core, session: SessionHandle, body: LogoutRequest | None = None) -> Any:
    clear = body.clear_stored_tokens if body else False
    core.auth.logout(session, clear_stored_tokens=clear)
    return ApiResponse()


@router.get("/status", response_model=ApiResponse[StatusData])
async def status(core: Core, session: SessionHandle) -> Any:
    return ApiResponse(data=StatusData(authenticated=core.auth.status(session)))


@router.post("/data", response_model=ApiResponse[HealthDataOut])
async def fetch_data(
    core: Core,
    session: SessionHandle,
    settings: AppSettings,
    body: FetchDataRequest | None = None,
) -> Any:
    """Fetch sleep, stress, body battery, activities and heart rate for the last N days."""
    days = body.days if body else settings.default_days
    if days > settings.max_days:
        raise HTTPException(status_code=422, detail=f"days must be at most {settings.max_days}")

    snapshot = await core.aggregator.fetch(session, days)
    return ApiResponse(data=HealthDataOut.from_snapshot(snapshot))
