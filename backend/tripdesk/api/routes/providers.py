"""Provider endpoints - flights, hotels and web search through fallback chains."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError

from backend.tripdesk.api.deps import get_orchestrator
from backend.tripdesk.errors import AllProvidersUnavailableError, NoResultsError
from backend.tripdesk.models.common import LuxuryTier, RouteType
from backend.tripdesk.models.providers import (
    FlightCriteria,
    FlightQuote,
    HotelCriteria,
    HotelResult,
    SearchCriteria,
    SearchResult,
)
from backend.tripdesk.services.fallback import FallbackOrchestrator

router = APIRouter(prefix="/providers", tags=["providers"])

Orchestrator = Annotated[FallbackOrchestrator, Depends(get_orchestrator)]


def _bad_request(e: ValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=[
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ],
    )


@router.get("/flights", response_model=FlightQuote)
async def search_flights(
    orchestrator: Orchestrator,
    origin: Annotated[str, Query(alias="from")],
    destination: Annotated[str, Query(alias="to")],
    month: str,
    adults: int = 2,
    route_type: RouteType = RouteType.round_trip,
) -> FlightQuote:
    """Flight price band for a route and month.

    Returns:
        200 with the first provider's quote
        400 on malformed codes or month
        404 if the last provider found no flights
        503 if every provider failed
    """
    try:
        criteria = FlightCriteria(
            origin=origin, destination=destination, month=month, adults=adults, route_type=route_type
        )
    except ValidationError as e:
        raise _bad_request(e) from e

    return await orchestrator.search_flights(criteria)


@router.get("/hotels", response_model=HotelResult)
async def search_hotels(
    orchestrator: Orchestrator,
    city: str,
    checkin: str,
    nights: int,
    country: str | None = None,
    luxury: LuxuryTier = LuxuryTier.comfort,
    adults: int = 2,
) -> HotelResult:
    """Up to three hotels for a city stay.

    A hotel gap is not fatal to trip building: when no provider can answer
    the caller gets a 404 telling them a travel professional will source
    options instead.
    """
    try:
        criteria = HotelCriteria(
            city=city, country=country, checkin=checkin, nights=nights, luxury=luxury, adults=adults
        )
    except ValidationError as e:
        raise _bad_request(e) from e

    try:
        return await orchestrator.search_hotels(criteria)
    except (NoResultsError, AllProvidersUnavailableError) as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "No hotels found",
                "message": "Hotels unavailable, a travel professional will provide options",
                "retryable": isinstance(e, AllProvidersUnavailableError),
            },
        ) from e


@router.get("/search", response_model=SearchResult)
async def web_search(
    orchestrator: Orchestrator,
    q: str,
    city: str | None = None,
    month: str | None = None,
    max_results: int = 5,
) -> SearchResult:
    """Ranked web results for a travel query."""
    try:
        criteria = SearchCriteria(query=q, city=city, month=month, max_results=max_results)
    except ValidationError as e:
        raise _bad_request(e) from e

    return await orchestrator.web_search(criteria)
