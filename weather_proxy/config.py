from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openweathermap.org/data/2.5"


def _csv_list(key: str, default: str = "") -> list[str]:
    raw = os.getenv(key, default)
    return [x.strip() for x in raw.split(",") if x.strip()]


def _int(key: str, default: int) -> int:
    """Read an integer env var; unset, blank or garbage falls back to *default*."""
    raw = os.getenv(key, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        log.warning("Env var %s=%r is not an integer; using %d", key, raw, default)
        return default


def _float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        log.warning("Env var %s=%r is not a number; using %s", key, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, built once at startup and passed around.

    Nothing reads the environment after ``from_env()``; the FastAPI app and
    the fetcher receive this object explicitly.
    """

    # --- Upstream (OpenWeatherMap) ---
    WEATHER_API_KEY: str = ""
    WEATHER_BASE_URL: str = DEFAULT_BASE_URL
    UPSTREAM_TIMEOUT: float = 10.0
    UPSTREAM_MAX_RETRIES: int = 2
    UPSTREAM_BACKOFF: float = 0.5

    # --- Cache ---
    REDIS_URL: str = ""
    REDIS_CONNECT_TIMEOUT: float = 10.0
    REDIS_COMMAND_TIMEOUT: float = 5.0
    CACHE_TTL: int = 43200

    # --- Server ---
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    # --- Rate limiting / CORS ---
    RATE_LIMIT_WINDOW: int = 15 * 60 * 1000  # ms
    RATE_LIMIT_MAX: int = 100
    CORS_ORIGINS: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            WEATHER_API_KEY=os.getenv("WEATHER_API_KEY", ""),
            WEATHER_BASE_URL=os.getenv("WEATHER_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            UPSTREAM_TIMEOUT=_float("UPSTREAM_TIMEOUT", 10.0),
            UPSTREAM_MAX_RETRIES=_int("UPSTREAM_MAX_RETRIES", 2),
            UPSTREAM_BACKOFF=_float("UPSTREAM_BACKOFF", 0.5),
            REDIS_URL=os.getenv("REDIS_URL", ""),
            REDIS_CONNECT_TIMEOUT=_float("REDIS_CONNECT_TIMEOUT", 10.0),
            REDIS_COMMAND_TIMEOUT=_float("REDIS_COMMAND_TIMEOUT", 5.0),
            CACHE_TTL=_int("CACHE_TTL", 43200),
            HOST=os.getenv("HOST", "0.0.0.0"),
            PORT=_int("PORT", 3000),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
            RATE_LIMIT_WINDOW=_int("RATE_LIMIT_WINDOW", 15 * 60 * 1000),
            RATE_LIMIT_MAX=_int("RATE_LIMIT_MAX", 100),
            CORS_ORIGINS=_csv_list("CORS_ORIGINS", "*") or ["*"],
        )

    @property
    def rate_limit_window_seconds(self) -> float:
        return self.RATE_LIMIT_WINDOW / 1000.0

    def validate(self) -> None:
        """Exit the process when a required setting is missing."""
        if not self.WEATHER_API_KEY:
            log.error("WEATHER_API_KEY environment variable is required")
            sys.exit(1)
        if not self.REDIS_URL:
            log.warning(
                "REDIS_URL is not set — responses are cached in-process only"
            )
