"""Turn raw OpenWeatherMap documents into the client-facing shapes.

Required fields missing upstream raise ``UpstreamError``; optional ones
(wind direction, visibility, ...) default to 0. Input dicts are never
mutated.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from weather_proxy.errors import UpstreamError

_MISSING = object()


def _dig(doc: Any, *path: Any, kind: str) -> Any:
    """Follow *path* through dicts/lists; raise if any hop is missing."""
    cur = doc
    for step in path:
        try:
            cur = cur[step]
        except (KeyError, IndexError, TypeError):
            cur = _MISSING
        if cur is _MISSING or cur is None:
            dotted = ".".join(str(p) for p in path)
            raise UpstreamError(
                f"Malformed {kind} payload: missing '{dotted}'", kind=kind
            )
    return cur


def _opt(doc: Any, *path: Any, default: Any = 0) -> Any:
    cur = doc
    for step in path:
        if isinstance(cur, dict):
            cur = cur.get(step)
        else:
            return default
    return default if cur is None else cur


def _utc(ts: Any, kind: str = "weather") -> datetime:
    if isinstance(ts, bool) or not isinstance(ts, (int, float)):
        raise UpstreamError(f"Malformed {kind} payload: bad 'dt'", kind=kind)
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise UpstreamError(f"Malformed {kind} payload: bad 'dt'", kind=kind) from e


def iso_timestamp(ts: Any, kind: str = "weather") -> str:
    """Unix seconds -> '2024-01-01T00:00:00.000Z'."""
    return _utc(ts, kind).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _location(name: Any, country: Any, coord: Any, kind: str) -> dict:
    return {
        "city": name,
        "country": country or "",
        "coordinates": {
            "lon": _dig(coord, "lon", kind=kind),
            "lat": _dig(coord, "lat", kind=kind),
        },
    }


def normalize_weather(raw: dict[str, Any], units: str) -> dict[str, Any]:
    kind = "weather"
    condition = _dig(raw, "weather", 0, kind=kind)
    main = _dig(raw, "main", kind=kind)

    return {
        "location": _location(
            _dig(raw, "name", kind=kind),
            _opt(raw, "sys", "country", default=""),
            _dig(raw, "coord", kind=kind),
            kind,
        ),
        "weather": {
            "condition": _dig(condition, "main", kind=kind),
            "description": _opt(condition, "description", default=""),
            "temperature": {
                "current": _dig(main, "temp", kind=kind),
                "high": _opt(main, "temp_max"),
                "low": _opt(main, "temp_min"),
                "feelsLike": _opt(main, "feels_like"),
            },
            "pressure": _opt(main, "pressure"),
            "humidity": _opt(main, "humidity"),
            "wind": {
                "speed": _opt(raw, "wind", "speed"),
                "direction": _opt(raw, "wind", "deg"),
            },
            "visibility": _opt(raw, "visibility"),
            "sunrise": _opt(raw, "sys", "sunrise"),
            "sunset": _opt(raw, "sys", "sunset"),
            "cloudiness": _opt(raw, "clouds", "all"),
        },
        "timestamp": iso_timestamp(_dig(raw, "dt", kind=kind), kind),
        "units": units,
    }


def _forecast_entry(item: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    kind = "forecast"
    when = _utc(_dig(item, "dt", kind=kind), kind)
    condition = _dig(item, "weather", 0, kind=kind)
    main = _dig(item, "main", kind=kind)
    return when.date().isoformat(), {
        "timestamp": when.strftime("%H:%M"),
        "temperature": _dig(main, "temp", kind=kind),
        "condition": _dig(condition, "main", kind=kind),
        "description": _opt(condition, "description", default=""),
        "pressure": _opt(main, "pressure"),
        "humidity": _opt(main, "humidity"),
        "wind_speed": _opt(item, "wind", "speed"),
        "feelsLike": _opt(main, "feels_like"),
    }


def group_by_day(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Group 3-hour slots by UTC date, in first-seen order."""
    days: dict[str, list[dict[str, Any]]] = {}
    for item in items:
        date, entry = _forecast_entry(item)
        days.setdefault(date, []).append(entry)
    return [{"date": date, "entries": entries} for date, entries in days.items()]


def normalize_forecast(raw: dict[str, Any], units: str) -> dict[str, Any]:
    kind = "forecast"
    city = _dig(raw, "city", kind=kind)
    items = _dig(raw, "list", kind=kind)
    if not isinstance(items, list):
        raise UpstreamError("Malformed forecast payload: 'list' is not a list", kind=kind)

    return {
        "location": _location(
            _dig(city, "name", kind=kind),
            _opt(city, "country", default=""),
            _dig(city, "coord", kind=kind),
            kind,
        ),
        "forecast": group_by_day(items),
        "units": units,
    }


NORMALIZERS = {
    "weather": normalize_weather,
    "forecast": normalize_forecast,
}
