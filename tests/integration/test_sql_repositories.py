"""Integration tests for SQL repositories on SQLite."""

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from backend.tripdesk.cache.query_cache import QueryCache
from backend.tripdesk.db.repositories import CacheRecord, HandoffRecord, TripRecord
from backend.tripdesk.db.sql_repositories import (
    SqlCacheRepository,
    SqlHandoffRepository,
    SqlTripRepository,
)
from backend.tripdesk.models.handoff import QuoteStatus
from backend.tripdesk.models.trip import TripStatus

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


def cache_record(created_at: int = 1_000, ttl_seconds: int = 60, body: str = '{"v": 1}') -> CacheRecord:
    return CacheRecord(
        provider="kiwi",
        query_hash="a" * 64,
        query_params='{"origin": "JFK"}',
        response_json=body,
        created_at=created_at,
        ttl_seconds=ttl_seconds,
    )


def trip_record(trip_id: str = "trip-1") -> TripRecord:
    return TripRecord(
        id=trip_id,
        user_id="user-1",
        template_id=None,
        intake={"destination": "Lisbon", "days": 5},
        research_summary=None,
        research_viewed=False,
        options=None,
        itinerary=None,
        selected_option_index=None,
        status=TripStatus.intake,
        created_at=NOW,
        updated_at=NOW,
    )


def handoff_record(handoff_id: str, trip_id: str, expires_at: datetime = NOW + timedelta(days=30)) -> HandoffRecord:
    return HandoffRecord(
        id=handoff_id,
        trip_id=trip_id,
        user_id="user-1",
        chat_history=[],
        research_summary="summary",
        user_preferences={"luxury_level": "comfort"},
        all_flight_options=[],
        selected_flight_id=None,
        all_hotel_options=[],
        selected_hotel_ids=[],
        daily_itinerary=[{"day": 1, "daily_total_usd": 100}],
        total_estimate_usd=100.0,
        margin_percent=17.0,
        agent_id=None,
        agent_quote_usd=None,
        agent_notes=None,
        quote_status=QuoteStatus.pending,
        created_at=NOW,
        quoted_at=None,
        expires_at=expires_at,
    )


class TestSqlCacheRepository:
    """Content-addressed cache rows."""

    @pytest.mark.asyncio
    async def test_upsert_overwrites_on_conflict(self, sqlite_session: AsyncSession) -> None:
        repo = SqlCacheRepository(sqlite_session)

        await repo.upsert(cache_record())
        await repo.upsert(cache_record(created_at=2_000, ttl_seconds=300, body='{"v": 2}'))

        row = await repo.get("kiwi", "a" * 64)
        assert row is not None
        assert row.response_json == '{"v": 2}'
        assert (row.created_at, row.ttl_seconds) == (2_000, 300)

    @pytest.mark.asyncio
    async def test_delete_guarded_by_created_at(self, sqlite_session: AsyncSession) -> None:
        repo = SqlCacheRepository(sqlite_session)
        await repo.upsert(cache_record(created_at=2_000))

        await repo.delete("kiwi", "a" * 64, created_at=1_000)
        assert await repo.get("kiwi", "a" * 64) is not None

        await repo.delete("kiwi", "a" * 64, created_at=2_000)
        assert await repo.get("kiwi", "a" * 64) is None

    @pytest.mark.asyncio
    async def test_purge_expired(self, sqlite_session: AsyncSession) -> None:
        repo = SqlCacheRepository(sqlite_session)
        await repo.upsert(cache_record(created_at=1_000, ttl_seconds=60))
        await repo.upsert(replace(cache_record(created_at=1_000, ttl_seconds=600), query_hash="b" * 64))

        removed = await repo.purge_expired(1_060)

        assert removed == 1
        assert await repo.get("kiwi", "a" * 64) is None
        assert await repo.get("kiwi", "b" * 64) is not None

    @pytest.mark.asyncio
    async def test_query_cache_over_sql(self, sqlite_session: AsyncSession) -> None:
        now = [1_000.0]
        cache = QueryCache(SqlCacheRepository(sqlite_session), now_fn=lambda: now[0])

        await cache.set("serper", "c" * 64, {"q": "rome"}, {"results": [1, 2]}, 120)
        hit = await cache.get("serper", "c" * 64)
        now[0] += 120

        assert hit is not None
        assert hit.response == {"results": [1, 2]}
        assert await cache.get("serper", "c" * 64) is None


class TestSqlTripRepository:
    """Trip rows and conditional status updates."""

    @pytest.mark.asyncio
    async def test_round_trip_json_columns(self, sqlite_session: AsyncSession) -> None:
        repo = SqlTripRepository(sqlite_session)
        await repo.create(trip_record())

        trip = await repo.get("trip-1")

        assert trip is not None
        assert trip.intake == {"destination": "Lisbon", "days": 5}
        assert trip.status == TripStatus.intake
        assert trip.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_update_only_from_expected_status(self, sqlite_session: AsyncSession) -> None:
        repo = SqlTripRepository(sqlite_session)
        await repo.create(trip_record())

        moved = await repo.update_if_status(
            "trip-1", TripStatus.intake, {"status": TripStatus.options_ready, "options": [{"title": "A"}]}
        )
        stale = await repo.update_if_status("trip-1", TripStatus.intake, {"status": TripStatus.researching})

        assert moved is True
        assert stale is False
        trip = await repo.get("trip-1")
        assert trip is not None
        assert trip.status == TripStatus.options_ready
        assert trip.options == [{"title": "A"}]

    @pytest.mark.asyncio
    async def test_missing_trip(self, sqlite_session: AsyncSession) -> None:
        repo = SqlTripRepository(sqlite_session)

        assert await repo.get("nope") is None
        assert await repo.update_if_status("nope", TripStatus.intake, {"research_viewed": True}) is False


class TestSqlHandoffRepository:
    """Handoff rows, uniqueness per trip, and expiry sweep."""

    @pytest.mark.asyncio
    async def test_insert_if_absent_is_unique_per_trip(self, sqlite_session: AsyncSession) -> None:
        repo = SqlHandoffRepository(sqlite_session)

        first, created = await repo.insert_if_absent(handoff_record("h-1", "trip-1"))
        second, created_again = await repo.insert_if_absent(handoff_record("h-2", "trip-1"))

        assert created is True
        assert created_again is False
        assert second.id == first.id == "h-1"
        assert await repo.get("h-2") is None

    @pytest.mark.asyncio
    async def test_quote_update_is_conditional(self, sqlite_session: AsyncSession) -> None:
        repo = SqlHandoffRepository(sqlite_session)
        await repo.insert_if_absent(handoff_record("h-1", "trip-1"))
        values = {"agent_id": "agent-7", "agent_quote_usd": 140.0, "quote_status": QuoteStatus.quoted, "quoted_at": NOW}

        assert await repo.update_if_status("h-1", QuoteStatus.pending, values) is True
        assert await repo.update_if_status("h-1", QuoteStatus.pending, values) is False

        doc = await repo.get("h-1")
        assert doc is not None
        assert doc.quote_status == QuoteStatus.quoted
        assert doc.agent_quote_usd == 140.0
        assert doc.quoted_at == NOW

    @pytest.mark.asyncio
    async def test_cancel_expired_runs_once(self, sqlite_session: AsyncSession) -> None:
        repo = SqlHandoffRepository(sqlite_session)
        await repo.insert_if_absent(handoff_record("h-old", "trip-1", expires_at=NOW - timedelta(days=1)))
        await repo.insert_if_absent(handoff_record("h-new", "trip-2"))
        await repo.insert_if_absent(handoff_record("h-quoted", "trip-3", expires_at=NOW - timedelta(days=1)))
        await repo.update_if_status("h-quoted", QuoteStatus.pending, {"quote_status": QuoteStatus.quoted})

        first = await repo.cancel_expired(NOW)
        second = await repo.cancel_expired(NOW)

        assert first == ["h-old"]
        assert second == []
        old = await repo.get("h-old")
        quoted = await repo.get("h-quoted")
        assert old is not None and old.quote_status == QuoteStatus.cancelled
        assert quoted is not None and quoted.quote_status == QuoteStatus.quoted

    @pytest.mark.asyncio
    async def test_list_for_agent(self, sqlite_session: AsyncSession) -> None:
        repo = SqlHandoffRepository(sqlite_session)
        await repo.insert_if_absent(handoff_record("h-1", "trip-1"))
        await repo.insert_if_absent(replace(handoff_record("h-2", "trip-2"), created_at=NOW + timedelta(hours=1)))
        await repo.insert_if_absent(handoff_record("h-3", "trip-3"))
        for handoff_id in ("h-1", "h-2"):
            await repo.update_if_status(
                handoff_id, QuoteStatus.pending, {"agent_id": "agent-7", "quote_status": QuoteStatus.quoted}
            )
        await repo.update_if_status("h-2", QuoteStatus.quoted, {"quote_status": QuoteStatus.booked})

        everything = await repo.list_for_agent("agent-7")
        booked = await repo.list_for_agent("agent-7", QuoteStatus.booked)

        assert [d.id for d in everything] == ["h-2", "h-1"]
        assert [d.id for d in booked] == ["h-2"]
