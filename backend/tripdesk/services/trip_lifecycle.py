"""Trip lifecycle: intake -> research -> options -> selection -> quoting-ready.

Status only moves forward. Skipping ahead is allowed (a trip without a
research step goes straight from intake to options); staying in place is
allowed where re-running a step makes sense (regenerating options,
re-selecting an option). Every write is a single-row update conditional on
the status the caller observed.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from backend.tripdesk.db.repositories import TripRecord, TripRepository
from backend.tripdesk.errors import (
    InvalidTransitionError,
    NotFoundError,
    PolicyViolationError,
    ResearchNotViewedError,
    ResearchUnavailableError,
)
from backend.tripdesk.models.trip import ResearchStatus, TripStatus

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def can_generate_options(trip: TripRecord) -> bool:
    """Research-first gate: research was viewed, or there is none to view."""
    return trip.research_viewed or trip.research_summary is None


class TripLifecycle:
    """State machine over trip records."""

    def __init__(
        self,
        repository: TripRepository,
        now_fn: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repo = repository
        self._now_fn = now_fn

    async def get(self, trip_id: str) -> TripRecord:
        """Load a trip.

        Raises:
            NotFoundError: If the trip does not exist
        """
        trip = await self._repo.get(trip_id)
        if trip is None:
            raise NotFoundError("trip", trip_id)
        return trip

    async def create_trip(
        self,
        user_id: str,
        intake: dict[str, Any],
        template_id: str | None = None,
    ) -> TripRecord:
        """Create a trip in the intake state."""
        now = self._now_fn()
        trip = TripRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            template_id=template_id,
            intake=intake,
            research_summary=None,
            research_viewed=False,
            options=None,
            itinerary=None,
            selected_option_index=None,
            status=TripStatus.intake,
            created_at=now,
            updated_at=now,
        )
        return await self._repo.create(trip)

    async def start_research(self, trip_id: str) -> TripRecord:
        """Move a trip into researching."""
        trip = await self.get(trip_id)
        return await self._advance(trip, TripStatus.researching)

    async def save_research(self, trip_id: str, summary: str) -> TripRecord:
        """Store the research summary and mark research complete.

        The viewed latch is left untouched; once true it stays true.
        """
        trip = await self.get(trip_id)
        return await self._advance(trip, TripStatus.research_complete, {"research_summary": summary})

    async def research_status(self, trip_id: str) -> ResearchStatus:
        """Current gate state for a trip."""
        trip = await self.get(trip_id)
        return ResearchStatus(
            trip_id=trip.id,
            has_research=trip.research_summary is not None,
            research_viewed=trip.research_viewed,
            can_generate_options=can_generate_options(trip),
            research_summary=trip.research_summary,
        )

    async def mark_research_viewed(self, trip_id: str) -> tuple[TripRecord, bool]:
        """Set the viewed latch.

        Returns:
            (trip, changed) where changed is False if it was already set

        Raises:
            NotFoundError: If the trip does not exist
            ResearchUnavailableError: If the trip has no research to view
        """
        trip = await self.get(trip_id)
        if trip.research_summary is None:
            raise ResearchUnavailableError("No research available for this trip")
        if trip.research_viewed:
            return trip, False

        await self._write(trip, {"research_viewed": True})
        return await self.get(trip_id), True

    async def record_options(self, trip_id: str, options: list[dict[str, Any]]) -> TripRecord:
        """Store generated options behind the research-first gate.

        Raises:
            ResearchNotViewedError: If research exists but has not been viewed
        """
        trip = await self.get(trip_id)
        if not can_generate_options(trip):
            logger.warning("Options blocked for trip %s: research not viewed", trip_id)
            raise ResearchNotViewedError(trip_id)
        if not options:
            raise PolicyViolationError("At least one option is required")

        return await self._advance(trip, TripStatus.options_ready, {"options": options})

    async def select_option(self, trip_id: str, option_index: int) -> TripRecord:
        """Select an option by 1-based index; re-selection is allowed.

        Raises:
            PolicyViolationError: If there are no options or the index is out of range
        """
        trip = await self.get(trip_id)
        if not trip.options:
            raise PolicyViolationError("Trip has no options to select from")
        if not 1 <= option_index <= len(trip.options):
            raise PolicyViolationError(
                f"option_index must be between 1 and {len(trip.options)}",
                details={"option_count": len(trip.options)},
            )

        return await self._advance(
            trip,
            TripStatus.option_selected,
            {
                "selected_option_index": option_index,
                "itinerary": trip.options[option_index - 1],
            },
        )

    async def mark_quoting_ready(self, trip_id: str) -> TripRecord:
        """Mark a trip with a selected option as ready for agent quoting."""
        trip = await self.get(trip_id)
        if trip.selected_option_index is None:
            raise InvalidTransitionError("Trip has no selected option")
        return await self._advance(trip, TripStatus.ab_ready)

    async def _advance(
        self,
        trip: TripRecord,
        target: TripStatus,
        values: dict[str, Any] | None = None,
    ) -> TripRecord:
        if target.rank < trip.status.rank:
            logger.warning(
                "Rejected backwards transition for trip %s: %s -> %s",
                trip.id,
                trip.status.value,
                target.value,
            )
            raise InvalidTransitionError(
                f"Cannot move trip from {trip.status.value} to {target.value}",
                details={"current_status": trip.status.value},
            )

        await self._write(trip, {**(values or {}), "status": target})
        return await self.get(trip.id)

    async def _write(self, trip: TripRecord, values: dict[str, Any]) -> None:
        updated = await self._repo.update_if_status(trip.id, trip.status, values)
        if not updated:
            raise InvalidTransitionError(
                f"Trip {trip.id} changed status concurrently; reload and retry",
            )
