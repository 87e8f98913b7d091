from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

Kind = Literal["weather", "forecast"]


class Units(str, Enum):
    metric = "metric"
    imperial = "imperial"
    standard = "standard"


class WeatherQuery(BaseModel):
    """One client request for a location, built from query parameters."""

    model_config = ConfigDict(frozen=True)

    city: str
    country: str | None = None
    units: Units = Units.metric

    @field_validator("city")
    @classmethod
    def _city_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("city must not be blank")
        return v

    @field_validator("country")
    @classmethod
    def _blank_country_is_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @property
    def location_query(self) -> str:
        """Location string as OpenWeatherMap's ``q`` expects it."""
        if self.country:
            return f"{self.city},{self.country}"
        return self.city


def normalize_location(location_query: str) -> str:
    """'  Paris , FR ' -> 'paris,fr'."""
    parts = [p.strip() for p in location_query.split(",")]
    return ",".join(parts).casefold()


def cache_key(kind: str, location_query: str, units: Units | str) -> str:
    """Build the cache key for a (kind, location, units) triple.

    Format ``{kind}:{location}:{units}``. Neither kind nor units can contain
    ``:``, so two different triples never share a key.
    """
    units_value = units.value if isinstance(units, Units) else units
    return f"{kind}:{normalize_location(location_query)}:{units_value}"
