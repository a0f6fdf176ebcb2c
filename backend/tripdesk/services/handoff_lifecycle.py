"""Handoff lifecycle: pending -> quoted -> booked | cancelled, with expiry."""

import logging
import uuid
from collections.abc import Callable, Mapping
from dataclasses import asdict
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import ValidationError

from backend.tripdesk.db.repositories import HandoffRecord, HandoffRepository
from backend.tripdesk.errors import (
    FieldError,
    HandoffExpiredError,
    HandoffNotQuotableError,
    HandoffValidationError,
    NotFoundError,
    PolicyViolationError,
    QuoteBelowEstimateError,
)
from backend.tripdesk.models.handoff import MAX_CHAT_MESSAGES, HandoffDraft, QuoteStatus
from backend.tripdesk.utils.metrics import handoffs_cleaned_total

logger = logging.getLogger(__name__)

EXPORT_API_VERSION = "1.0"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def handoff_to_dict(doc: HandoffRecord) -> dict[str, Any]:
    """JSON-safe view of a handoff, including the margin-adjusted target quote."""
    data = asdict(doc)
    for key, value in data.items():
        if isinstance(value, Enum):
            data[key] = value.value
        elif isinstance(value, datetime):
            data[key] = value.isoformat()
    data["target_quote_usd"] = round(doc.total_estimate_usd * (1 + doc.margin_percent / 100), 2)
    return data


class HandoffLifecycle:
    """State machine over handoff documents."""

    def __init__(
        self,
        repository: HandoffRepository,
        ttl_days: int = 30,
        margin_percent: float = 17.0,
        chat_history_limit: int = MAX_CHAT_MESSAGES,
        now_fn: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repo = repository
        self._ttl = timedelta(days=ttl_days)
        self._margin_percent = margin_percent
        self._chat_history_limit = chat_history_limit
        self._now_fn = now_fn

    def validate(self, payload: Mapping[str, Any]) -> HandoffDraft:
        """Validate handoff contents, keeping only the most recent chat messages.

        Raises:
            HandoffValidationError: With one FieldError per failed field
        """
        data = dict(payload)
        history = list(data.get("chat_history") or [])
        data["chat_history"] = history[-self._chat_history_limit :]

        try:
            return HandoffDraft.model_validate(data)
        except ValidationError as e:
            errors = [
                FieldError(
                    field=".".join(str(part) for part in err["loc"]) or "document",
                    message=err["msg"],
                )
                for err in e.errors()
            ]
            raise HandoffValidationError(errors) from e

    async def get(self, handoff_id: str) -> HandoffRecord:
        """Load a handoff.

        Raises:
            NotFoundError: If the handoff does not exist
        """
        doc = await self._repo.get(handoff_id)
        if doc is None:
            raise NotFoundError("handoff", handoff_id)
        return doc

    async def get_by_trip(self, trip_id: str) -> HandoffRecord | None:
        """Handoff for a trip, if one was created."""
        return await self._repo.get_by_trip(trip_id)

    async def create(
        self, trip_id: str, user_id: str, payload: Mapping[str, Any]
    ) -> tuple[HandoffRecord, bool]:
        """Create the handoff for a trip, or return the existing one.

        Args:
            trip_id: Trip the handoff snapshots
            user_id: Trip owner
            payload: Handoff contents (see HandoffDraft)

        Returns:
            (document, created); created is False when the trip already had one

        Raises:
            HandoffValidationError: If the contents are malformed
        """
        existing = await self._repo.get_by_trip(trip_id)
        if existing is not None:
            return existing, False

        draft = self.validate(payload)
        now = self._now_fn()
        record = HandoffRecord(
            id=str(uuid.uuid4()),
            trip_id=trip_id,
            user_id=user_id,
            chat_history=[m.model_dump(mode="json") for m in draft.chat_history],
            research_summary=draft.research_summary,
            user_preferences=draft.user_preferences.model_dump(mode="json"),
            all_flight_options=[f.model_dump(mode="json") for f in draft.all_flight_options],
            selected_flight_id=draft.selected_flight_id,
            all_hotel_options=[h.model_dump(mode="json") for h in draft.all_hotel_options],
            selected_hotel_ids=list(draft.selected_hotel_ids),
            daily_itinerary=[d.model_dump(mode="json") for d in draft.daily_itinerary],
            total_estimate_usd=float(draft.total_estimate_usd or 0),
            margin_percent=(
                draft.margin_percent if draft.margin_percent is not None else self._margin_percent
            ),
            agent_id=None,
            agent_quote_usd=None,
            agent_notes=None,
            quote_status=QuoteStatus.pending,
            created_at=now,
            quoted_at=None,
            expires_at=now + self._ttl,
        )

        # Uniqueness on trip_id settles concurrent creators
        doc, created = await self._repo.insert_if_absent(record)
        if created:
            logger.info("Created handoff %s for trip %s", doc.id, trip_id)
        return doc, created

    async def submit_quote(
        self,
        handoff_id: str,
        agent_id: str,
        quote_usd: float,
        notes: str | None = None,
    ) -> HandoffRecord:
        """Record an agent quote (pending -> quoted).

        Expiry is checked before the amount, so an expired handoff is
        rejected regardless of the quote.

        Raises:
            NotFoundError: Unknown handoff
            HandoffExpiredError: Past expires_at
            QuoteBelowEstimateError: quote_usd < total_estimate_usd
            HandoffNotQuotableError: Not pending
        """
        if quote_usd <= 0:
            raise PolicyViolationError("quote_usd must be greater than 0")

        doc = await self.get(handoff_id)
        now = self._now_fn()

        if now > doc.expires_at:
            logger.warning("Quote rejected for expired handoff %s", handoff_id)
            raise HandoffExpiredError(
                "Handoff has expired",
                details={"expires_at": doc.expires_at.isoformat()},
            )

        if quote_usd < doc.total_estimate_usd:
            logger.warning(
                "Quote %.2f below estimate %.2f for handoff %s",
                quote_usd,
                doc.total_estimate_usd,
                handoff_id,
            )
            raise QuoteBelowEstimateError(
                "Quote is below the trip's total estimate",
                details={"minimum_usd": doc.total_estimate_usd, "quote_usd": quote_usd},
            )

        if doc.quote_status != QuoteStatus.pending:
            raise HandoffNotQuotableError(
                f"Handoff is {doc.quote_status.value}, only pending handoffs accept quotes",
                details={"quote_status": doc.quote_status.value},
            )

        updated = await self._repo.update_if_status(
            handoff_id,
            QuoteStatus.pending,
            {
                "agent_id": agent_id,
                "agent_quote_usd": quote_usd,
                "agent_notes": notes,
                "quote_status": QuoteStatus.quoted,
                "quoted_at": now,
            },
        )
        if not updated:
            raise HandoffNotQuotableError("Handoff changed status concurrently")

        logger.info("Handoff %s quoted by %s at %.2f", handoff_id, agent_id, quote_usd)
        return await self.get(handoff_id)

    async def mark_booked(self, handoff_id: str, agent_id: str) -> HandoffRecord:
        """Confirm a quoted handoff as booked by the quoting agent."""
        doc = await self.get(handoff_id)
        if doc.quote_status != QuoteStatus.quoted:
            raise HandoffNotQuotableError(
                f"Handoff is {doc.quote_status.value}, only quoted handoffs can be booked",
                details={"quote_status": doc.quote_status.value},
            )
        if doc.agent_id != agent_id:
            raise PolicyViolationError("Only the quoting agent can book this handoff")

        if not await self._repo.update_if_status(
            handoff_id, QuoteStatus.quoted, {"quote_status": QuoteStatus.booked}
        ):
            raise HandoffNotQuotableError("Handoff changed status concurrently")
        return await self.get(handoff_id)

    async def cancel(self, handoff_id: str) -> HandoffRecord:
        """Cancel a pending or quoted handoff."""
        doc = await self.get(handoff_id)
        if doc.quote_status not in (QuoteStatus.pending, QuoteStatus.quoted):
            raise HandoffNotQuotableError(
                f"Handoff is {doc.quote_status.value} and cannot be cancelled",
                details={"quote_status": doc.quote_status.value},
            )

        if not await self._repo.update_if_status(
            handoff_id, doc.quote_status, {"quote_status": QuoteStatus.cancelled}
        ):
            raise HandoffNotQuotableError("Handoff changed status concurrently")
        return await self.get(handoff_id)

    async def cleanup_expired(self) -> list[str]:
        """Cancel every pending handoff past expiry.

        Safe to run repeatedly or concurrently; each row moves only while
        still pending, so a second run reports nothing new.

        Returns:
            IDs cancelled by this run
        """
        cancelled = await self._repo.cancel_expired(self._now_fn())
        if cancelled:
            handoffs_cleaned_total.inc(len(cancelled))
        logger.info(
            "Expired handoff cleanup cancelled %d documents",
            len(cancelled),
            extra={"structured": {"cleaned_count": len(cancelled), "handoff_ids": cancelled}},
        )
        return cancelled

    async def list_for_agent(
        self, agent_id: str, status: QuoteStatus | None = None
    ) -> list[HandoffRecord]:
        """Handoffs an agent has quoted, optionally filtered by status."""
        return await self._repo.list_for_agent(agent_id, status)

    def export_json(self, doc: HandoffRecord) -> dict[str, Any]:
        """Export envelope for downstream booking tools."""
        return {
            "handoff": handoff_to_dict(doc),
            "export_timestamp": self._now_fn().isoformat(),
            "api_version": EXPORT_API_VERSION,
        }
