from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from weather_proxy.errors import GatewayError, InternalError
from weather_proxy.models import WeatherQuery
from weather_proxy.routes._deps import get_fetcher, weather_query
from weather_proxy.services.fetcher import CacheAsideFetcher

router = APIRouter()
log = logging.getLogger(__name__)


@router.get("/forecast")
async def get_forecast(
    query: WeatherQuery = Depends(weather_query),
    fetcher: CacheAsideFetcher = Depends(get_fetcher),
):
    log.info("Requesting forecast data for %s", query.location_query)
    try:
        return await fetcher.resolve("forecast", query)
    except GatewayError:
        raise
    except Exception as e:
        log.exception("Error fetching forecast data for %s", query.location_query)
        raise InternalError(str(e)) from e
