"""
System Router for the StockDash API.

Endpoints:
- GET /health - Health check (store ping)
- GET /info - System information
"""

from __future__ import annotations

import logging
import platform
import sys
from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from stockdash import __version__
from stockdash.api.deps import get_settings, get_store
from stockdash.api.schemas import HealthResponse
from stockdash.config import Settings
from stockdash.core.errors import PersistenceError
from stockdash.storage import LedgerStore


logger = logging.getLogger(__name__)

router = APIRouter()

# Track API start time
_start_time = datetime.now(timezone.utc)


@router.get("/health", response_model=HealthResponse)
def health_check(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Any:
    """
    Health check endpoint.

    Returns 503 when the store does not answer. This endpoint is public.
    """
    try:
        store: LedgerStore = get_store()
        store_ok = store.ping()
    except PersistenceError:
        logger.exception("Store unavailable")
        store_ok = False

    body = HealthResponse(
        status="healthy" if store_ok else "unhealthy",
        timestamp=datetime.now(timezone.utc),
        components={
            "store": {"backend": settings.storage, "healthy": store_ok},
            "market_data": {"source": settings.market_source},
        },
    )
    if not store_ok:
        return JSONResponse(status_code=503, content=body.model_dump(mode="json"))
    return body


@router.get("/info")
async def system_info(
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict[str, Any]:
    """
    Get system information.

    Returns API version, Python version, and uptime. This endpoint is public.
    """
    uptime = datetime.now(timezone.utc) - _start_time

    return {
        "name": "StockDash API",
        "version": __version__,
        "python_version": sys.version,
        "platform": platform.platform(),
        "storage": settings.storage,
        "market_data": settings.market_source,
        "uptime_seconds": int(uptime.total_seconds()),
        "started_at": _start_time.isoformat(),
        "docs_url": "/docs",
    }
