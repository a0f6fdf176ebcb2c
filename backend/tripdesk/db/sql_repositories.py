"""SQL implementations of repository interfaces."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.tripdesk.db.models import CacheEntry, HandoffDocument, ThemedTrip
from backend.tripdesk.db.repositories import CacheRecord, HandoffRecord, TripRecord
from backend.tripdesk.models.handoff import QuoteStatus
from backend.tripdesk.models.trip import TripStatus

# TripRecord/HandoffRecord field -> column, where they differ
_TRIP_COLUMNS = {"intake": "intake_json", "options": "options_json", "itinerary": "itinerary_json"}


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; every stored timestamp is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _column_values(values: dict[str, Any], renames: dict[str, str]) -> dict[str, Any]:
    columns: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, TripStatus | QuoteStatus):
            value = value.value
        columns[renames.get(key, key)] = value
    return columns


class SqlCacheRepository:
    """SQL implementation of CacheRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, provider: str, query_hash: str) -> CacheRecord | None:
        """Read a cache row."""
        result = await self._session.execute(
            select(CacheEntry).where(
                CacheEntry.provider == provider, CacheEntry.query_hash == query_hash
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None

        return CacheRecord(
            provider=row.provider,
            query_hash=row.query_hash,
            query_params=row.query_params,
            response_json=row.response_json,
            created_at=row.created_at,
            ttl_seconds=row.ttl_seconds,
        )

    async def delete(self, provider: str, query_hash: str, created_at: int) -> None:
        """Delete a row unless it was rewritten after the read."""
        await self._session.execute(
            delete(CacheEntry).where(
                CacheEntry.provider == provider,
                CacheEntry.query_hash == query_hash,
                CacheEntry.created_at == created_at,
            )
        )
        await self._session.commit()

    async def upsert(self, record: CacheRecord) -> None:
        """Insert or overwrite the row for (provider, query_hash)."""
        dialect = self._session.bind.dialect.name if self._session.bind else "sqlite"
        insert_fn = postgresql.insert if dialect == "postgresql" else sqlite.insert

        stmt = insert_fn(CacheEntry).values(
            provider=record.provider,
            query_hash=record.query_hash,
            query_params=record.query_params,
            response_json=record.response_json,
            created_at=record.created_at,
            ttl_seconds=record.ttl_seconds,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[CacheEntry.provider, CacheEntry.query_hash],
            set_={
                "response_json": stmt.excluded.response_json,
                "query_params": stmt.excluded.query_params,
                "created_at": stmt.excluded.created_at,
                "ttl_seconds": stmt.excluded.ttl_seconds,
            },
        )
        await self._session.execute(stmt)
        await self._session.commit()

    async def purge_expired(self, now: int) -> int:
        """Delete every expired row."""
        result = await self._session.execute(
            delete(CacheEntry).where(CacheEntry.created_at + CacheEntry.ttl_seconds <= now)
        )
        await self._session.commit()
        return result.rowcount or 0


class SqlTripRepository:
    """SQL implementation of TripRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @staticmethod
    def _to_record(row: ThemedTrip) -> TripRecord:
        return TripRecord(
            id=row.id,
            user_id=row.user_id,
            template_id=row.template_id,
            intake=row.intake_json,
            research_summary=row.research_summary,
            research_viewed=row.research_viewed,
            options=row.options_json,
            itinerary=row.itinerary_json,
            selected_option_index=row.selected_option_index,
            status=TripStatus(row.status),
            created_at=_as_utc(row.created_at),  # type: ignore[arg-type]
            updated_at=_as_utc(row.updated_at),  # type: ignore[arg-type]
        )

    async def create(self, record: TripRecord) -> TripRecord:
        """Persist a new trip."""
        trip = ThemedTrip(
            id=record.id,
            user_id=record.user_id,
            template_id=record.template_id,
            intake_json=record.intake,
            research_summary=record.research_summary,
            research_viewed=record.research_viewed,
            options_json=record.options,
            itinerary_json=record.itinerary,
            selected_option_index=record.selected_option_index,
            status=record.status.value,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
        self._session.add(trip)
        await self._session.commit()
        return record

    async def get(self, trip_id: str) -> TripRecord | None:
        """Get trip by ID."""
        result = await self._session.execute(select(ThemedTrip).where(ThemedTrip.id == trip_id))
        row = result.scalar_one_or_none()
        return self._to_record(row) if row is not None else None

    async def update_if_status(
        self, trip_id: str, expected: TripStatus, values: dict[str, Any]
    ) -> bool:
        """Conditional single-row update keyed on the current status."""
        columns = _column_values(values, _TRIP_COLUMNS)
        columns["updated_at"] = datetime.now(UTC)

        result = await self._session.execute(
            update(ThemedTrip)
            .where(ThemedTrip.id == trip_id, ThemedTrip.status == expected.value)
            .values(**columns)
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        # Drop identity-map copies so the next read sees the new row
        self._session.expire_all()
        return bool(result.rowcount)


class SqlHandoffRepository:
    """SQL implementation of HandoffRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @staticmethod
    def _to_record(row: HandoffDocument) -> HandoffRecord:
        return HandoffRecord(
            id=row.id,
            trip_id=row.trip_id,
            user_id=row.user_id,
            chat_history=row.chat_history,
            research_summary=row.research_summary,
            user_preferences=row.user_preferences,
            all_flight_options=row.all_flight_options,
            selected_flight_id=row.selected_flight_id,
            all_hotel_options=row.all_hotel_options,
            selected_hotel_ids=row.selected_hotel_ids,
            daily_itinerary=row.daily_itinerary,
            total_estimate_usd=float(row.total_estimate_usd),
            margin_percent=float(row.margin_percent),
            agent_id=row.agent_id,
            agent_quote_usd=float(row.agent_quote_usd) if row.agent_quote_usd is not None else None,
            agent_notes=row.agent_notes,
            quote_status=QuoteStatus(row.quote_status),
            created_at=_as_utc(row.created_at),  # type: ignore[arg-type]
            quoted_at=_as_utc(row.quoted_at),
            expires_at=_as_utc(row.expires_at),  # type: ignore[arg-type]
        )

    async def insert_if_absent(self, record: HandoffRecord) -> tuple[HandoffRecord, bool]:
        """Insert, treating a trip_id uniqueness violation as "already exists"."""
        doc = HandoffDocument(
            id=record.id,
            trip_id=record.trip_id,
            user_id=record.user_id,
            chat_history=record.chat_history,
            research_summary=record.research_summary,
            user_preferences=record.user_preferences,
            all_flight_options=record.all_flight_options,
            selected_flight_id=record.selected_flight_id,
            all_hotel_options=record.all_hotel_options,
            selected_hotel_ids=record.selected_hotel_ids,
            daily_itinerary=record.daily_itinerary,
            total_estimate_usd=record.total_estimate_usd,
            margin_percent=record.margin_percent,
            agent_id=record.agent_id,
            agent_quote_usd=record.agent_quote_usd,
            agent_notes=record.agent_notes,
            quote_status=record.quote_status.value,
            created_at=record.created_at,
            quoted_at=record.quoted_at,
            expires_at=record.expires_at,
        )
        self._session.add(doc)
        try:
            await self._session.commit()
        except IntegrityError:
            await self._session.rollback()
            existing = await self.get_by_trip(record.trip_id)
            if existing is None:
                raise
            return existing, False

        return record, True

    async def get(self, handoff_id: str) -> HandoffRecord | None:
        """Get handoff by ID."""
        result = await self._session.execute(
            select(HandoffDocument).where(HandoffDocument.id == handoff_id)
        )
        row = result.scalar_one_or_none()
        return self._to_record(row) if row is not None else None

    async def get_by_trip(self, trip_id: str) -> HandoffRecord | None:
        """Get handoff for a trip."""
        result = await self._session.execute(
            select(HandoffDocument).where(HandoffDocument.trip_id == trip_id)
        )
        row = result.scalar_one_or_none()
        return self._to_record(row) if row is not None else None

    async def update_if_status(
        self, handoff_id: str, expected: QuoteStatus, values: dict[str, Any]
    ) -> bool:
        """Conditional single-row update keyed on the current quote status."""
        result = await self._session.execute(
            update(HandoffDocument)
            .where(HandoffDocument.id == handoff_id, HandoffDocument.quote_status == expected.value)
            .values(**_column_values(values, {}))
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        self._session.expire_all()
        return bool(result.rowcount)

    async def cancel_expired(self, now: datetime) -> list[str]:
        """Cancel pending handoffs past expiry; each row keyed on still being pending."""
        result = await self._session.execute(
            update(HandoffDocument)
            .where(
                HandoffDocument.quote_status == QuoteStatus.pending.value,
                HandoffDocument.expires_at < now,
            )
            .values(quote_status=QuoteStatus.cancelled.value)
            .returning(HandoffDocument.id)
            .execution_options(synchronize_session=False)
        )
        cancelled = [row[0] for row in result.all()]
        await self._session.commit()
        self._session.expire_all()
        return cancelled

    async def list_for_agent(
        self, agent_id: str, status: QuoteStatus | None = None
    ) -> list[HandoffRecord]:
        """List handoffs quoted by an agent, newest first."""
        query = select(HandoffDocument).where(HandoffDocument.agent_id == agent_id)
        if status is not None:
            query = query.where(HandoffDocument.quote_status == status.value)
        query = query.order_by(HandoffDocument.created_at.desc())

        result = await self._session.execute(query)
        return [self._to_record(row) for row in result.scalars().all()]
