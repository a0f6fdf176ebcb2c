"""Agent quoting and handoff maintenance endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from backend.tripdesk.api.auth import get_current_context
from backend.tripdesk.api.deps import get_handoff_lifecycle
from backend.tripdesk.db.context import RequestContext
from backend.tripdesk.errors import NotFoundError
from backend.tripdesk.models.handoff import QuoteStatus
from backend.tripdesk.services.handoff_lifecycle import HandoffLifecycle, handoff_to_dict

router = APIRouter(tags=["handoffs"])

Handoffs = Annotated[HandoffLifecycle, Depends(get_handoff_lifecycle)]


class SubmitQuoteRequest(BaseModel):
    """Request body for POST /agent/quotes."""

    handoff_id: str = Field(..., min_length=1)
    agent_id: str = Field(..., min_length=1)
    quote_usd: float = Field(..., gt=0)
    notes: str | None = None


class BookRequest(BaseModel):
    """Request body for POST /handoffs/{handoff_id}/book."""

    agent_id: str = Field(..., min_length=1)


@router.post("/agent/quotes")
async def submit_quote(request: SubmitQuoteRequest, handoffs: Handoffs) -> dict[str, Any]:
    """Submit an agent quote for a pending handoff.

    Returns:
        200 with the quoted handoff
        400 if expired, below estimate, or not pending
        404 if the handoff does not exist
    """
    doc = await handoffs.submit_quote(
        request.handoff_id, request.agent_id, request.quote_usd, request.notes
    )
    return {"success": True, "handoff": handoff_to_dict(doc)}


@router.get("/agent/quotes")
async def list_quotes(
    handoffs: Handoffs,
    agent_id: Annotated[str, Query(min_length=1)],
    status: QuoteStatus | None = None,
) -> dict[str, Any]:
    """List an agent's quotes, optionally filtered by status."""
    docs = await handoffs.list_for_agent(agent_id, status)
    return {"quotes": [handoff_to_dict(d) for d in docs], "count": len(docs)}


@router.post("/handoffs/{handoff_id}/book")
async def book_handoff(handoff_id: str, request: BookRequest, handoffs: Handoffs) -> dict[str, Any]:
    """Confirm a quoted handoff as booked."""
    doc = await handoffs.mark_booked(handoff_id, request.agent_id)
    return {"success": True, "handoff": handoff_to_dict(doc)}


@router.post("/handoffs/{handoff_id}/cancel")
async def cancel_handoff(
    handoff_id: str,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    handoffs: Handoffs,
) -> dict[str, Any]:
    """Cancel a pending or quoted handoff (trip owner only)."""
    doc = await handoffs.get(handoff_id)
    if doc.user_id != ctx.user_id:
        raise NotFoundError("handoff", handoff_id)
    doc = await handoffs.cancel(handoff_id)
    return {"success": True, "handoff": handoff_to_dict(doc)}


@router.post("/admin/handoffs/cleanup")
async def cleanup_expired(handoffs: Handoffs) -> dict[str, Any]:
    """Cancel pending handoffs past expiry. Idempotent."""
    cancelled = await handoffs.cleanup_expired()
    return {"success": True, "cleaned_count": len(cancelled), "handoffs": cancelled}
