from __future__ import annotations

from fastapi import Request
from pydantic import ValidationError as PydanticValidationError

from weather_proxy.errors import ValidationError
from weather_proxy.models import Units, WeatherQuery
from weather_proxy.services.fetcher import CacheAsideFetcher

_UNITS = ", ".join(u.value for u in Units)


def weather_query(
    city: str | None = None,
    country: str | None = None,
    units: str | None = None,
) -> WeatherQuery:
    """Build a WeatherQuery from query params, 400 on bad input."""
    if city is None or not city.strip():
        raise ValidationError(
            "City is required", "Query parameter 'city' must be provided"
        )
    units = (units or Units.metric.value).strip().lower()
    if units not in Units.__members__:
        raise ValidationError(
            "Invalid units", f"'units' must be one of: {_UNITS}"
        )
    try:
        return WeatherQuery(city=city, country=country, units=Units(units))
    except PydanticValidationError as e:
        raise ValidationError("Invalid query", str(e)) from e


def get_fetcher(request: Request) -> CacheAsideFetcher:
    return request.app.state.fetcher
