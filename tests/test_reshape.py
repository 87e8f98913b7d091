"""Reshaping raw OpenWeatherMap payloads into client documents."""

from __future__ import annotations

import copy

import pytest

from factories import make_owm_forecast, make_owm_slot, make_owm_weather
from weather_proxy.errors import UpstreamError
from weather_proxy.services.reshape import (
    group_by_day,
    iso_timestamp,
    normalize_forecast,
    normalize_weather,
)


class TestNormalizeWeather:
    def test_full_document(self):
        doc = normalize_weather(make_owm_weather(), "metric")
        assert doc == {
            "location": {
                "city": "Paris",
                "country": "FR",
                "coordinates": {"lon": 2.3488, "lat": 48.8534},
            },
            "weather": {
                "condition": "Clear",
                "description": "clear sky",
                "temperature": {
                    "current": 18.4,
                    "high": 20.1,
                    "low": 16.0,
                    "feelsLike": 17.9,
                },
                "pressure": 1015,
                "humidity": 62,
                "wind": {"speed": 3.6, "direction": 240},
                "visibility": 10000,
                "sunrise": 1704094500,
                "sunset": 1704124800,
                "cloudiness": 0,
            },
            "timestamp": "2024-01-01T00:00:00.000Z",
            "units": "metric",
        }

    def test_optional_fields_default_to_zero(self):
        raw = make_owm_weather(wind={"speed": 1.5})
        del raw["visibility"]
        del raw["clouds"]
        doc = normalize_weather(raw, "imperial")
        assert doc["weather"]["wind"] == {"speed": 1.5, "direction": 0}
        assert doc["weather"]["visibility"] == 0
        assert doc["weather"]["cloudiness"] == 0
        assert doc["units"] == "imperial"

    def test_input_not_mutated(self):
        raw = make_owm_weather()
        del raw["visibility"]
        snapshot = copy.deepcopy(raw)
        normalize_weather(raw, "metric")
        assert raw == snapshot

    def test_missing_weather_entry_is_upstream_error(self):
        with pytest.raises(UpstreamError) as exc_info:
            normalize_weather(make_owm_weather(weather=[]), "metric")
        assert exc_info.value.upstream_status is None
        assert exc_info.value.status_code == 500
        assert "weather.0" in exc_info.value.details

    def test_missing_main_is_upstream_error(self):
        raw = make_owm_weather()
        del raw["main"]
        with pytest.raises(UpstreamError):
            normalize_weather(raw, "metric")

    def test_missing_coordinates_is_upstream_error(self):
        with pytest.raises(UpstreamError):
            normalize_weather(make_owm_weather(coord={"lon": 1.0}), "metric")

    @pytest.mark.parametrize("dt", ["yesterday", True, 10**20, float("nan")])
    def test_bad_timestamp_is_upstream_error(self, dt):
        with pytest.raises(UpstreamError) as exc_info:
            normalize_weather(make_owm_weather(dt=dt), "metric")
        assert exc_info.value.status_code == 500
        assert exc_info.value.details == "Malformed weather payload: bad 'dt'"


class TestForecastGrouping:
    def test_groups_by_utc_date_in_order(self):
        slots = [
            make_owm_slot(1704067200, temp=1.0),  # 2024-01-01T00:00Z
            make_owm_slot(1704078000, temp=2.0),  # 2024-01-01T03:00Z
            make_owm_slot(1704153600, temp=3.0),  # 2024-01-02T00:00Z
        ]
        groups = group_by_day(slots)
        assert [g["date"] for g in groups] == ["2024-01-01", "2024-01-02"]
        assert [e["temperature"] for e in groups[0]["entries"]] == [1.0, 2.0]
        assert [e["timestamp"] for e in groups[0]["entries"]] == ["00:00", "03:00"]
        assert len(groups[1]["entries"]) == 1

    def test_entry_shape(self):
        [group] = group_by_day([make_owm_slot(1704078000, temp=7.5, main="Rain")])
        assert group["entries"][0] == {
            "timestamp": "03:00",
            "temperature": 7.5,
            "condition": "Rain",
            "description": "rain",
            "pressure": 1012,
            "humidity": 80,
            "wind_speed": 4.2,
            "feelsLike": 6.5,
        }

    def test_empty_list(self):
        assert group_by_day([]) == []


class TestNormalizeForecast:
    def test_full_document(self):
        doc = normalize_forecast(make_owm_forecast(), "metric")
        assert doc["location"] == {
            "city": "London",
            "country": "GB",
            "coordinates": {"lon": -0.1257, "lat": 51.5085},
        }
        assert doc["units"] == "metric"
        assert [g["date"] for g in doc["forecast"]] == ["2024-01-01", "2024-01-02"]

    def test_slot_without_weather_is_upstream_error(self):
        bad = make_owm_slot(1704067200)
        bad["weather"] = []
        with pytest.raises(UpstreamError) as exc_info:
            normalize_forecast(make_owm_forecast([bad]), "metric")
        assert exc_info.value.kind == "forecast"

    @pytest.mark.parametrize("dt", [10**20, "1704067200"])
    def test_slot_with_bad_timestamp_is_upstream_error(self, dt):
        with pytest.raises(UpstreamError) as exc_info:
            normalize_forecast(make_owm_forecast([make_owm_slot(dt)]), "metric")
        assert exc_info.value.kind == "forecast"
        assert exc_info.value.error == "Failed to get forecast data from OpenWeatherMap API"

    def test_missing_city_is_upstream_error(self):
        raw = make_owm_forecast()
        del raw["city"]
        with pytest.raises(UpstreamError):
            normalize_forecast(raw, "metric")


def test_iso_timestamp_matches_javascript_format():
    assert iso_timestamp(1704078000) == "2024-01-01T03:00:00.000Z"
