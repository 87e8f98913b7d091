"""
Fixed-window, per-client rate limiter.

Each client (first X-Forwarded-For hop, else peer address) gets
RATE_LIMIT_MAX requests per RATE_LIMIT_WINDOW. Counters live in process
memory and reset when the window rolls over. /health is never limited.
"""
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

EXEMPT_PATHS = ("/health",)


@dataclass
class _Window:
    started: float
    count: int = 0


def _client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        max_requests: int = 100,
        window_seconds: float = 900.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def _hit(self, key: str, now: float) -> _Window:
        window = self._windows.get(key)
        if window is None or now - window.started >= self.window_seconds:
            # Drop stale counters so the table does not grow without bound.
            self._windows = {
                k: w for k, w in self._windows.items()
                if now - w.started < self.window_seconds
            }
            window = self._windows[key] = _Window(started=now)
        window.count += 1
        return window

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXEMPT_PATHS or self.max_requests <= 0:
            return await call_next(request)

        now = self._clock()
        window = self._hit(_client_key(request), now)
        reset_in = max(0.0, window.started + self.window_seconds - now)
        headers = {
            "RateLimit-Limit": str(self.max_requests),
            "RateLimit-Remaining": str(max(0, self.max_requests - window.count)),
            "RateLimit-Reset": str(math.ceil(reset_in)),
        }

        if window.count > self.max_requests:
            headers["Retry-After"] = str(max(1, math.ceil(reset_in)))
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Too many requests, please try again later",
                    "details": f"Limit of {self.max_requests} requests per "
                               f"{int(self.window_seconds)}s exceeded",
                },
                headers=headers,
            )

        response = await call_next(request)
        for key, value in headers.items():
            response.headers[key] = value
        return response
