"""Exception handlers mapping domain errors onto HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from backend.tripdesk.errors import (
    AllProvidersUnavailableError,
    NoResultsError,
    NotFoundError,
    PolicyViolationError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = "30"


async def policy_violation_handler(request: Request, exc: PolicyViolationError) -> JSONResponse:
    body: dict[str, object] = {"error": exc.reason, "details": exc.details}
    if exc.requires_action:
        body["requires_action"] = exc.requires_action
    return JSONResponse(status_code=exc.status_code, content=body)


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": f"{exc.kind.capitalize()} not found", "details": {"id": exc.identifier}},
    )


async def no_results_handler(request: Request, exc: NoResultsError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "No results", "details": {"provider": exc.provider, "reason": exc.reason}},
    )


async def providers_unavailable_handler(request: Request, exc: AllProvidersUnavailableError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "Provider unavailable",
            "details": {
                "capability": exc.capability,
                "attempts": [{"provider": a.provider, "reason": a.reason} for a in exc.attempts],
            },
        },
        headers={"Retry-After": RETRY_AFTER_SECONDS},
    )


async def provider_error_handler(request: Request, exc: ProviderUnavailableError) -> JSONResponse:
    # Reached only when an adapter is called outside a fallback chain
    logger.warning("Unhandled provider failure: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "Provider unavailable", "details": {"provider": exc.provider}},
        headers={"Retry-After": RETRY_AFTER_SECONDS},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install domain error handlers on the app."""
    app.add_exception_handler(PolicyViolationError, policy_violation_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(NoResultsError, no_results_handler)
    app.add_exception_handler(AllProvidersUnavailableError, providers_unavailable_handler)
    app.add_exception_handler(ProviderUnavailableError, provider_error_handler)
