"""Weather proxy — cached OpenWeatherMap gateway."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from weather_proxy.cache import create_store
from weather_proxy.config import Settings
from weather_proxy.errors import register_exception_handlers
from weather_proxy.middleware.access_log import access_log_middleware
from weather_proxy.middleware.cors import setup_cors
from weather_proxy.middleware.rate_limit import RateLimitMiddleware
from weather_proxy.routes import forecast, health
from weather_proxy.routes import weather as weather_routes
from weather_proxy.services.fetcher import CacheAsideFetcher

settings = Settings.from_env()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
# httpx logs full request URLs at INFO, and those carry the appid key.
logging.getLogger("httpx").setLevel(logging.WARNING)
log = logging.getLogger("weather_proxy")


@asynccontextmanager
async def lifespan(app: FastAPI):
    cfg: Settings = app.state.settings
    cfg.validate()

    client = httpx.AsyncClient(timeout=httpx.Timeout(cfg.UPSTREAM_TIMEOUT))
    store = create_store(
        cfg.REDIS_URL, cfg.REDIS_CONNECT_TIMEOUT, cfg.REDIS_COMMAND_TIMEOUT
    )
    await store.connect()

    app.state.http = client
    app.state.store = store
    app.state.fetcher = CacheAsideFetcher(store, client, cfg)

    log.info(
        "Weather proxy started — cache=%s ttl=%ds, port %s",
        type(store).__name__,
        cfg.CACHE_TTL,
        cfg.PORT,
    )
    yield

    await store.close()
    await client.aclose()
    log.info("Weather proxy shutdown complete")


def create_app(cfg: Settings | None = None) -> FastAPI:
    cfg = cfg or settings
    application = FastAPI(
        title="Weather Proxy",
        version="0.1.0",
        lifespan=lifespan,
    )
    application.state.settings = cfg

    register_exception_handlers(application)

    application.include_router(health.router)
    application.include_router(weather_routes.router)
    application.include_router(forecast.router)

    # Last added runs outermost: CORS, then access log, then rate limit.
    application.add_middleware(
        RateLimitMiddleware,
        max_requests=cfg.RATE_LIMIT_MAX,
        window_seconds=cfg.rate_limit_window_seconds,
    )
    application.middleware("http")(access_log_middleware)
    setup_cors(application, cfg)
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "weather_proxy.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
