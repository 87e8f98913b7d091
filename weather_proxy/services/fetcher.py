"""Cache-aside retrieval for /weather and /forecast.

key -> cache read -> (miss) upstream -> reshape -> cache write -> return.

Concurrent misses for the same key share one in-flight resolution, so a
burst of identical requests costs a single upstream call.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx

from weather_proxy.config import Settings
from weather_proxy.errors import CacheError
from weather_proxy.models import Kind, WeatherQuery, cache_key
from weather_proxy.services import openweather
from weather_proxy.services.reshape import NORMALIZERS

log = logging.getLogger(__name__)


class CacheAsideFetcher:
    def __init__(self, store: Any, client: httpx.AsyncClient, settings: Settings) -> None:
        self._store = store
        self._client = client
        self._settings = settings
        self._inflight: dict[str, asyncio.Task] = {}

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def resolve(self, kind: Kind, query: WeatherQuery) -> dict[str, Any]:
        """Return the normalized document for *query*, from cache if possible."""
        key = cache_key(kind, query.location_query, query.units)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key, kind, query))
            self._inflight[key] = task
            task.add_done_callback(lambda _t, k=key: self._inflight.pop(k, None))
        else:
            log.debug("Joining in-flight request for %s", key)

        # A caller going away must not cancel the fetch other callers await.
        return await asyncio.shield(task)

    async def _load(self, key: str, kind: Kind, query: WeatherQuery) -> dict[str, Any]:
        cached = await self._read(key)
        if cached is not None:
            log.info("Cache hit for %s", key)
            return cached

        log.info("Cache miss for %s, fetching from API", key)
        units = query.units.value
        raw = await openweather.fetch(
            self._client, self._settings, kind, query.location_query, units
        )
        document = NORMALIZERS[kind](raw, units)
        await self._write(key, document)
        return document

    async def _read(self, key: str) -> dict[str, Any] | None:
        try:
            payload = await self._store.get(key)
        except CacheError as e:
            log.warning("Cache read failed for %s, treating as miss: %s", key, e)
            return None
        if payload is None:
            return None
        try:
            document = json.loads(payload)
        except (TypeError, ValueError) as e:
            log.warning("Discarding undecodable cache entry %s: %s", key, e)
            return None
        if not isinstance(document, dict):
            log.warning("Discarding non-object cache entry %s", key)
            return None
        return document

    async def _write(self, key: str, document: dict[str, Any]) -> None:
        try:
            await self._store.set(key, json.dumps(document), self._settings.CACHE_TTL)
        except CacheError as e:
            log.warning("Cache write failed for %s, serving uncached: %s", key, e)
