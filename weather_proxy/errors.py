"""Error taxonomy and the JSON error envelope ``{error, details}``."""
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class GatewayError(Exception):
    """Base for every error the facade knows how to render."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, details: str = "") -> None:
        super().__init__(details)
        self.details = details

    def envelope(self) -> dict[str, str]:
        return {"error": self.error, "details": self.details}


class ValidationError(GatewayError):
    """Bad client input; raised before any cache or upstream I/O."""

    status_code = 400

    def __init__(self, error: str, details: str = "") -> None:
        super().__init__(details)
        self.error = error


class UpstreamError(GatewayError):
    """OpenWeatherMap answered non-2xx, was unreachable, or sent junk.

    ``upstream_status`` is None for network failures, timeouts and
    malformed payloads; the facade answers 500 in that case.
    """

    def __init__(
        self,
        message: str,
        upstream_status: int | None = None,
        kind: str = "weather",
    ) -> None:
        super().__init__(message or "Unknown error")
        self.upstream_status = upstream_status
        self.kind = kind
        self.status_code = upstream_status or 500
        self.error = f"Failed to get {kind} data from OpenWeatherMap API"


class CacheError(GatewayError):
    """Cache store read/write failure. Logged by the fetcher, never rendered."""


class InternalError(GatewayError):
    """Anything unexpected, wrapped by the route handlers."""


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.envelope())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GatewayError, gateway_error_handler)
