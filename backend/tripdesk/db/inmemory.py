"""In-memory implementations of repository interfaces."""

from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from backend.tripdesk.db.repositories import CacheRecord, HandoffRecord, TripRecord
from backend.tripdesk.models.handoff import QuoteStatus
from backend.tripdesk.models.trip import TripStatus


class InMemoryCacheRepository:
    """In-memory implementation of CacheRepository."""

    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], CacheRecord] = {}
        self.reads = 0
        self.writes = 0

    async def get(self, provider: str, query_hash: str) -> CacheRecord | None:
        """Read a cache row."""
        self.reads += 1
        return self._rows.get((provider, query_hash))

    async def delete(self, provider: str, query_hash: str, created_at: int) -> None:
        """Delete a row unless it was rewritten after the read."""
        self.writes += 1
        row = self._rows.get((provider, query_hash))
        if row is not None and row.created_at == created_at:
            del self._rows[(provider, query_hash)]

    async def upsert(self, record: CacheRecord) -> None:
        """Insert or overwrite the row for (provider, query_hash)."""
        self.writes += 1
        self._rows[(record.provider, record.query_hash)] = replace(record)

    async def purge_expired(self, now: int) -> int:
        """Delete every expired row."""
        expired = [key for key, row in self._rows.items() if not row.is_valid(now)]
        for key in expired:
            del self._rows[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._rows)


class InMemoryTripRepository:
    """In-memory implementation of TripRepository."""

    def __init__(self) -> None:
        self._trips: dict[str, TripRecord] = {}

    async def create(self, record: TripRecord) -> TripRecord:
        """Persist a new trip."""
        self._trips[record.id] = replace(record)
        return record

    async def get(self, trip_id: str) -> TripRecord | None:
        """Get trip by ID."""
        record = self._trips.get(trip_id)
        return replace(record) if record is not None else None

    async def update_if_status(
        self, trip_id: str, expected: TripStatus, values: dict[str, Any]
    ) -> bool:
        """Conditional update keyed on the current status."""
        record = self._trips.get(trip_id)
        if record is None or record.status != expected:
            return False

        self._trips[trip_id] = replace(record, **values, updated_at=datetime.now(UTC))
        return True


class InMemoryHandoffRepository:
    """In-memory implementation of HandoffRepository."""

    def __init__(self) -> None:
        self._docs: dict[str, HandoffRecord] = {}

    async def insert_if_absent(self, record: HandoffRecord) -> tuple[HandoffRecord, bool]:
        """Insert unless a document for the trip already exists."""
        existing = await self.get_by_trip(record.trip_id)
        if existing is not None:
            return existing, False

        self._docs[record.id] = replace(record)
        return record, True

    async def get(self, handoff_id: str) -> HandoffRecord | None:
        """Get handoff by ID."""
        record = self._docs.get(handoff_id)
        return replace(record) if record is not None else None

    async def get_by_trip(self, trip_id: str) -> HandoffRecord | None:
        """Get handoff for a trip."""
        for record in self._docs.values():
            if record.trip_id == trip_id:
                return replace(record)
        return None

    async def update_if_status(
        self, handoff_id: str, expected: QuoteStatus, values: dict[str, Any]
    ) -> bool:
        """Conditional update keyed on the current quote status."""
        record = self._docs.get(handoff_id)
        if record is None or record.quote_status != expected:
            return False

        self._docs[handoff_id] = replace(record, **values)
        return True

    async def cancel_expired(self, now: datetime) -> list[str]:
        """Cancel pending handoffs past expiry."""
        cancelled = []
        for handoff_id, record in self._docs.items():
            if record.quote_status == QuoteStatus.pending and record.expires_at < now:
                self._docs[handoff_id] = replace(record, quote_status=QuoteStatus.cancelled)
                cancelled.append(handoff_id)
        return cancelled

    async def list_for_agent(
        self, agent_id: str, status: QuoteStatus | None = None
    ) -> list[HandoffRecord]:
        """List handoffs quoted by an agent, newest first."""
        records = [
            replace(r)
            for r in self._docs.values()
            if r.agent_id == agent_id and (status is None or r.quote_status == status)
        ]
        return sorted(records, key=lambda r: r.created_at, reverse=True)
