"""Trip endpoints - research gate, options, selection and handoff assembly."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Response, status
from pydantic import BaseModel, Field

from backend.tripdesk.api.auth import get_current_context
from backend.tripdesk.api.deps import get_handoff_lifecycle, get_trip_lifecycle
from backend.tripdesk.db.context import RequestContext
from backend.tripdesk.db.repositories import TripRecord
from backend.tripdesk.errors import InvalidTransitionError, NotFoundError
from backend.tripdesk.models.trip import ResearchStatus, TripStatus
from backend.tripdesk.services.handoff_lifecycle import HandoffLifecycle
from backend.tripdesk.services.trip_lifecycle import TripLifecycle

router = APIRouter(prefix="/trips", tags=["trips"])

Context = Annotated[RequestContext, Depends(get_current_context)]
Trips = Annotated[TripLifecycle, Depends(get_trip_lifecycle)]
Handoffs = Annotated[HandoffLifecycle, Depends(get_handoff_lifecycle)]


class CreateTripRequest(BaseModel):
    """Request body for POST /trips."""

    intake: dict[str, Any]
    template_id: str | None = None


class SaveResearchRequest(BaseModel):
    """Request body for POST /trips/{trip_id}/research."""

    summary: str = Field(..., min_length=1)


class OptionsRequest(BaseModel):
    """Request body for POST /trips/{trip_id}/options."""

    options: list[dict[str, Any]] = Field(..., min_length=1)


class SelectOptionRequest(BaseModel):
    """Request body for POST /trips/{trip_id}/select (1-based index)."""

    option_index: int = Field(..., ge=1)


class TripResponse(BaseModel):
    """Trip as returned by the API."""

    id: str
    user_id: str
    template_id: str | None
    status: TripStatus
    research_viewed: bool
    has_research: bool
    option_count: int
    selected_option_index: int | None

    @classmethod
    def from_record(cls, trip: TripRecord) -> "TripResponse":
        return cls(
            id=trip.id,
            user_id=trip.user_id,
            template_id=trip.template_id,
            status=trip.status,
            research_viewed=trip.research_viewed,
            has_research=trip.research_summary is not None,
            option_count=len(trip.options or []),
            selected_option_index=trip.selected_option_index,
        )


async def _owned_trip(trips: TripLifecycle, trip_id: str, ctx: RequestContext) -> TripRecord:
    # Other users' trips are reported as missing
    trip = await trips.get(trip_id)
    if trip.user_id != ctx.user_id:
        raise NotFoundError("trip", trip_id)
    return trip


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(request: CreateTripRequest, ctx: Context, trips: Trips) -> TripResponse:
    """Create a trip from structured intake."""
    trip = await trips.create_trip(ctx.user_id, request.intake, request.template_id)
    return TripResponse.from_record(trip)


@router.post("/{trip_id}/research", response_model=TripResponse)
async def save_research(
    trip_id: str, request: SaveResearchRequest, ctx: Context, trips: Trips
) -> TripResponse:
    """Store the research summary for a trip."""
    await _owned_trip(trips, trip_id, ctx)
    trip = await trips.save_research(trip_id, request.summary)
    return TripResponse.from_record(trip)


@router.get("/{trip_id}/research", response_model=ResearchStatus)
async def get_research(trip_id: str, ctx: Context, trips: Trips) -> ResearchStatus:
    """Research gate state."""
    await _owned_trip(trips, trip_id, ctx)
    return await trips.research_status(trip_id)


@router.patch("/{trip_id}/research")
async def mark_research_viewed(trip_id: str, ctx: Context, trips: Trips) -> dict[str, Any]:
    """Acknowledge the research summary; repeating the call is a no-op."""
    await _owned_trip(trips, trip_id, ctx)
    trip, changed = await trips.mark_research_viewed(trip_id)
    return {
        "success": True,
        "message": "Research marked as viewed" if changed else "Research already viewed",
        "trip_id": trip.id,
        "can_generate_options": True,
    }


@router.post("/{trip_id}/options", response_model=TripResponse)
async def record_options(
    trip_id: str, request: OptionsRequest, ctx: Context, trips: Trips
) -> TripResponse:
    """Store generated options (403 until research is viewed)."""
    await _owned_trip(trips, trip_id, ctx)
    trip = await trips.record_options(trip_id, request.options)
    return TripResponse.from_record(trip)


@router.post("/{trip_id}/select", response_model=TripResponse)
async def select_option(
    trip_id: str, request: SelectOptionRequest, ctx: Context, trips: Trips
) -> TripResponse:
    """Select one of the generated options."""
    await _owned_trip(trips, trip_id, ctx)
    trip = await trips.select_option(trip_id, request.option_index)
    return TripResponse.from_record(trip)


@router.post("/{trip_id}/handoff")
async def create_handoff(
    trip_id: str,
    payload: Annotated[dict[str, Any], Body()],
    response: Response,
    ctx: Context,
    trips: Trips,
    handoffs: Handoffs,
) -> dict[str, Any]:
    """Assemble the agent handoff for a trip with a selected option.

    Returns 201 when created, 200 when the trip already had one.
    """
    trip = await _owned_trip(trips, trip_id, ctx)
    if trip.selected_option_index is None:
        raise InvalidTransitionError("Select an option before requesting a quote")

    body = {"research_summary": trip.research_summary, **payload}
    doc, created = await handoffs.create(trip.id, trip.user_id, body)
    if trip.status != TripStatus.ab_ready:
        await trips.mark_quoting_ready(trip.id)

    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return handoffs.export_json(doc)


@router.get("/{trip_id}/handoff")
async def get_handoff(trip_id: str, ctx: Context, trips: Trips, handoffs: Handoffs) -> dict[str, Any]:
    """Export the trip's handoff document."""
    await _owned_trip(trips, trip_id, ctx)
    doc = await handoffs.get_by_trip(trip_id)
    if doc is None:
        raise NotFoundError("handoff", trip_id)
    return handoffs.export_json(doc)
