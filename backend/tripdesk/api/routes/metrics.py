"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Exposes provider latency/error/cache-hit series, city resolution
    counts by method, and handoff cleanup totals.
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
