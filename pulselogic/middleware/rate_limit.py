"""In-memory sliding-window rate limiter for the ``/api`` routes.

State is per process, which is fine for a single instance.  Behind several
replicas the limit applies per replica.
"""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Any

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from pulselogic.config import Settings, get_settings

EXEMPT_PATHS = frozenset({"/api/health"})


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP sliding window rate limiter."""

    def __init__(
        self,
        app: Any,
        settings: Settings | None = None,
        window_seconds: int = 60,
        prefix: str = "/api",
    ) -> None:
        super().__init__(app)
        s = settings or get_settings()
        self._max_requests = s.rate_limit_per_minute
        self._window_seconds = window_seconds
        self._prefix = prefix
        # ip -> timestamps inside the window
        self._requests: dict[str, list[float]] = defaultdict(list)

    def _client_ip(self, request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    def _cleanup(self, ip: str, now: float) -> None:
        cutoff = now - self._window_seconds
        recent = [t for t in self._requests[ip] if t > cutoff]
        if recent:
            self._requests[ip] = recent
        else:
            del self._requests[ip]

    def _limited(self, path: str) -> bool:
        return path.startswith(self._prefix) and path not in EXEMPT_PATHS

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not self._limited(request.url.path):
            return await call_next(request)

        ip = self._client_ip(request)
        now = time.monotonic()
        self._cleanup(ip, now)

        window = self._requests[ip]
        if len(window) >= self._max_requests:
            retry_after = int(self._window_seconds - (now - window[0]))
            return JSONResponse(
                {
                    "success": False,
                    "error": "Too many requests, please try again later.",
                    "code": "rate_limited",
                },
                status_code=429,
                headers={"Retry-After": str(max(retry_after, 1))},
            )

        window.append(now)

        response = await call_next(request)

        remaining = self._max_requests - len(window)
        response.headers["X-RateLimit-Limit"] = str(self._max_requests)
        response.headers["X-RateLimit-Remaining"] = str(max(remaining, 0))

        return response
