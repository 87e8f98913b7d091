"""OpenWeatherMap client: current weather (/weather) and 5-day forecast (/forecast)."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from weather_proxy.config import Settings
from weather_proxy.errors import UpstreamError

log = logging.getLogger(__name__)

ENDPOINTS = {
    "weather": "/weather",
    "forecast": "/forecast",
}

_BACKOFF_CAP = 5.0


def _redact(text: str, secret: str) -> str:
    if secret and secret in text:
        return text.replace(secret, "***")
    return text


def _error_message(resp: httpx.Response) -> str:
    """Pull OpenWeatherMap's ``message`` out of an error body."""
    try:
        body = resp.json()
    except ValueError:
        return "Unknown error"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return "Unknown error"


def _is_transient(status: int) -> bool:
    return 500 <= status < 600


async def fetch(
    client: httpx.AsyncClient,
    settings: Settings,
    kind: str,
    location_query: str,
    units: str,
) -> dict[str, Any]:
    """GET the raw upstream document for *kind*.

    Network errors, timeouts and 5xx are retried with exponential backoff;
    4xx come straight back as ``UpstreamError`` carrying the upstream status.
    """
    url = f"{settings.WEATHER_BASE_URL}{ENDPOINTS[kind]}"
    params = {
        "q": location_query,
        "units": units,
        "appid": settings.WEATHER_API_KEY,
    }
    key = settings.WEATHER_API_KEY
    retries = max(0, settings.UPSTREAM_MAX_RETRIES)
    backoff = settings.UPSTREAM_BACKOFF

    for attempt in range(retries + 1):
        last_try = attempt == retries
        try:
            resp = await client.get(url, params=params, timeout=settings.UPSTREAM_TIMEOUT)
        except httpx.TimeoutException as e:
            # Exception text can embed the request URL, and with it the key.
            err = UpstreamError(
                f"Request to weather API timed out after {settings.UPSTREAM_TIMEOUT}s",
                kind=kind,
            )
            cause: Exception = e
        except httpx.RequestError as e:
            err = UpstreamError(
                f"Could not reach weather API ({type(e).__name__})", kind=kind
            )
            cause = e
        else:
            if resp.is_success:
                try:
                    data = resp.json()
                except ValueError as e:
                    raise UpstreamError(
                        "Weather API returned a non-JSON body", kind=kind
                    ) from e
                if not isinstance(data, dict):
                    raise UpstreamError(
                        "Weather API returned an unexpected document", kind=kind
                    )
                return data

            message = _redact(_error_message(resp), key)
            log.warning(
                "Weather API %s returned %d for %r: %s",
                kind, resp.status_code, location_query, message,
            )
            err = UpstreamError(message, upstream_status=resp.status_code, kind=kind)
            if not _is_transient(resp.status_code):
                raise err
            cause = err

        if last_try:
            log.error(
                "Weather API %s failed after %d attempt(s) for %r: %s",
                kind, attempt + 1, location_query, err.details,
            )
            raise err from (cause if cause is not err else None)

        delay = min(backoff * (2 ** attempt), _BACKOFF_CAP)
        log.info(
            "Retrying weather API %s for %r in %.2fs (attempt %d/%d): %s",
            kind, location_query, delay, attempt + 1, retries, err.details,
        )
        await asyncio.sleep(delay)

    raise RuntimeError("openweather.fetch exhausted attempts without a result")
