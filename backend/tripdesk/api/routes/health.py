"""Health check endpoints.

- /health: liveness, always 200
- /healthz: database connectivity plus which provider chains are configured
"""

import logging
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from backend.tripdesk.config import Settings, get_settings
from backend.tripdesk.db.engine import get_async_engine

logger = logging.getLogger(__name__)

router = APIRouter()


async def check_db() -> tuple[bool, str]:
    """Check database connectivity.

    Returns:
        (is_ok, status_message)
    """
    try:
        async with get_async_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return (True, "ok")
    except Exception as e:
        logger.warning("Database health check failed: %s", type(e).__name__)
        return (False, f"error: {type(e).__name__}")


def provider_status(settings: Settings) -> dict[str, list[str]]:
    """Providers per capability that have credentials, in fallback order."""
    amadeus = bool(settings.amadeus_client_id and settings.amadeus_client_secret)
    chains = {
        "flights": [("amadeus", amadeus), ("kiwi", bool(settings.kiwi_api_key))],
        "hotels": [("amadeus", amadeus), ("serper", bool(settings.serper_api_key))],
        "search": [("serper", bool(settings.serper_api_key)), ("tavily", bool(settings.tavily_api_key))],
    }
    return {cap: [name for name, ok in chain if ok] for cap, chain in chains.items()}


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz() -> dict[str, Any] | JSONResponse:
    """Component health.

    Returns:
        200 with component status if the database is reachable
        503 otherwise
    """
    db_ok, db_status = await check_db()
    body = {
        "status": "ok" if db_ok else "degraded",
        "components": {"db": db_status, "providers": provider_status(get_settings())},
    }

    if not db_ok:
        return JSONResponse(content=body, status_code=503)
    return body
