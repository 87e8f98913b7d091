from __future__ import annotations

import time
from datetime import datetime, timezone

from fastapi import APIRouter

router = APIRouter()

_start_time = time.monotonic()


@router.get("/health")
async def health():
    """Liveness only; touches neither the cache nor the weather API."""
    return {
        "status": "ok",
        "uptime": round(time.monotonic() - _start_time, 3),
        "timestamp": datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z"),
    }
