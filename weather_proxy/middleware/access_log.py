from __future__ import annotations

import logging
from typing import Callable

from fastapi import Request, Response

log = logging.getLogger("weather_proxy.access")


async def access_log_middleware(request: Request, call_next: Callable) -> Response:
    """Log ``METHOD path - client`` for every request."""
    client = request.client.host if request.client else "-"
    log.info("%s %s - %s", request.method, request.url.path, client)
    return await call_next(request)
