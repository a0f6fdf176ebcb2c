"""Repository protocol interfaces for data access."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from backend.tripdesk.models.handoff import QuoteStatus
from backend.tripdesk.models.trip import TripStatus


@dataclass
class CacheRecord:
    """Cached provider response."""

    provider: str
    query_hash: str
    query_params: str
    response_json: str
    created_at: int
    ttl_seconds: int

    def is_valid(self, now: int) -> bool:
        """Check whether the entry is still inside its TTL."""
        return now - self.created_at < self.ttl_seconds

    def age_seconds(self, now: int) -> int:
        """Seconds since the entry was written."""
        return max(0, now - self.created_at)


@dataclass
class TripRecord:
    """Trip data record."""

    id: str
    user_id: str
    template_id: str | None
    intake: dict[str, Any]
    research_summary: str | None
    research_viewed: bool
    options: list[dict[str, Any]] | None
    itinerary: dict[str, Any] | None
    selected_option_index: int | None
    status: TripStatus
    created_at: datetime
    updated_at: datetime


@dataclass
class HandoffRecord:
    """Handoff document record."""

    id: str
    trip_id: str
    user_id: str
    chat_history: list[dict[str, Any]]
    research_summary: str | None
    user_preferences: dict[str, Any]
    all_flight_options: list[dict[str, Any]]
    selected_flight_id: str | None
    all_hotel_options: list[dict[str, Any]]
    selected_hotel_ids: list[str]
    daily_itinerary: list[dict[str, Any]]
    total_estimate_usd: float
    margin_percent: float
    agent_id: str | None
    agent_quote_usd: float | None
    agent_notes: str | None
    quote_status: QuoteStatus
    created_at: datetime
    quoted_at: datetime | None
    expires_at: datetime


class CacheRepository(Protocol):
    """Repository for cached provider responses."""

    async def get(self, provider: str, query_hash: str) -> CacheRecord | None:
        """Read a cache row.

        Args:
            provider: Provider namespace
            query_hash: Hex digest of the query parameters

        Returns:
            Row (valid or not) or None if absent
        """
        ...

    async def delete(self, provider: str, query_hash: str, created_at: int) -> None:
        """Delete a row, but only if it has not been rewritten since it was read.

        Args:
            provider: Provider namespace
            query_hash: Hex digest of the query parameters
            created_at: Write timestamp observed by the reader
        """
        ...

    async def upsert(self, record: CacheRecord) -> None:
        """Insert or overwrite the row for (provider, query_hash)."""
        ...

    async def purge_expired(self, now: int) -> int:
        """Delete every expired row.

        Returns:
            Number of rows removed
        """
        ...


class TripRepository(Protocol):
    """Repository for trip records."""

    async def create(self, record: TripRecord) -> TripRecord:
        """Persist a new trip."""
        ...

    async def get(self, trip_id: str) -> TripRecord | None:
        """Get trip by ID."""
        ...

    async def update_if_status(
        self, trip_id: str, expected: TripStatus, values: dict[str, Any]
    ) -> bool:
        """Apply field changes only if the trip still has the expected status.

        Args:
            trip_id: Trip ID
            expected: Status observed by the caller
            values: TripRecord field names mapped to new values

        Returns:
            True if a row was updated
        """
        ...


class HandoffRepository(Protocol):
    """Repository for handoff documents."""

    async def insert_if_absent(self, record: HandoffRecord) -> tuple[HandoffRecord, bool]:
        """Insert a handoff unless one already exists for the trip.

        Returns:
            (stored record, created) where created is False if an existing
            document for the same trip was returned instead
        """
        ...

    async def get(self, handoff_id: str) -> HandoffRecord | None:
        """Get handoff by ID."""
        ...

    async def get_by_trip(self, trip_id: str) -> HandoffRecord | None:
        """Get handoff for a trip."""
        ...

    async def update_if_status(
        self, handoff_id: str, expected: QuoteStatus, values: dict[str, Any]
    ) -> bool:
        """Apply field changes only if the handoff still has the expected status.

        Returns:
            True if a row was updated
        """
        ...

    async def cancel_expired(self, now: datetime) -> list[str]:
        """Cancel every pending handoff whose expiry is before now.

        Returns:
            IDs of the handoffs transitioned by this call
        """
        ...

    async def list_for_agent(
        self, agent_id: str, status: QuoteStatus | None = None
    ) -> list[HandoffRecord]:
        """List handoffs quoted by an agent, newest first."""
        ...
