"""FastAPI application."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.tripdesk.api.errors import register_exception_handlers
from backend.tripdesk.api.routes.handoffs import router as handoffs_router
from backend.tripdesk.api.routes.health import router as health_router
from backend.tripdesk.api.routes.metrics import router as metrics_router
from backend.tripdesk.api.routes.providers import router as providers_router
from backend.tripdesk.api.routes.trips import router as trips_router
from backend.tripdesk.db.engine import dispose_async_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Release database connections on shutdown."""
    logger.info("Starting %s v%s", app.title, app.version)
    yield
    await dispose_async_engine()


app = FastAPI(title="Tripdesk API", version="0.1.0", lifespan=lifespan)

register_exception_handlers(app)

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(providers_router, tags=["providers"])
app.include_router(trips_router, tags=["trips"])
app.include_router(handoffs_router, tags=["handoffs"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Tripdesk API", "version": "0.1.0"}
