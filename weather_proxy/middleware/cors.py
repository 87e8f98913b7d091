"""CORS policy. Permit-all unless CORS_ORIGINS narrows it."""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from weather_proxy.config import Settings


def setup_cors(app: FastAPI, settings: Settings) -> None:
    allow_all = "*" in settings.CORS_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else list(settings.CORS_ORIGINS),
        # Browsers reject credentials with a wildcard origin.
        allow_credentials=not allow_all,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
        max_age=600,
    )
