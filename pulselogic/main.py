"""PulseLogic API: FastAPI application entry point.

Run locally:
    uvicorn pulselogic.main:app --reload --port 3001
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pulselogic.config import Settings, get_settings
from pulselogic.garmin.errors import GarminCoreError
from pulselogic.garmin.provider import GarminProvider
from pulselogic.garmin.service import GarminCore
from pulselogic.middleware.rate_limit import RateLimitMiddleware
from pulselogic.middleware.security import SecurityHeadersMiddleware
from pulselogic.routers import garmin, health

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("pulselogic")


# ---------- Error handlers ----------

async def garmin_error_handler(request: Request, exc: GarminCoreError) -> JSONResponse:
    logger.info("%s %s -> %s (%s)", request.method, request.url.path, exc.status_code, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = ", ".join(".".join(str(p) for p in err["loc"] if p != "body") for err in exc.errors())
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": f"Validation failed: {fields}", "code": "validation_error"},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = str(exc) if get_settings().debug else "Internal server error"
    return JSONResponse(status_code=500, content={"success": False, "error": message})


# ---------- App factory ----------

def create_app(settings: Settings | None = None, provider: GarminProvider | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Startup / shutdown hooks."""
        logger.info(
            "Starting %s API v%s [%s]",
            settings.app_name,
            settings.app_version,
            settings.environment,
        )
        core = GarminCore.from_settings(settings, provider=provider)
        app.state.garmin = core
        core.start()
        yield
        await core.stop()
        logger.info("%s API shut down", settings.app_name)

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Garmin Connect login, MFA and multi-metric health data acquisition.",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ---------- Middleware (last added is outermost) ----------

    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.environment == "production")
    app.add_middleware(RateLimitMiddleware, settings=settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Garmin-Session"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"],
    )

    # ---------- Error handlers ----------

    app.add_exception_handler(GarminCoreError, garmin_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # ---------- Routes ----------

    api_prefix = "/api"
    app.include_router(health.router, prefix=api_prefix)
    app.include_router(garmin.router, prefix=api_prefix)

    return app


app = create_app()
