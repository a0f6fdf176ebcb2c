"""Shared pytest fixtures for all test suites."""

import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from backend.tripdesk.cache.query_cache import QueryCache
from backend.tripdesk.db.inmemory import InMemoryCacheRepository
from backend.tripdesk.db.models import Base


class FakeClock:
    """Settable clock returning epoch seconds or aware datetimes."""

    def __init__(self, start: datetime = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)) -> None:
        self.now = start

    def epoch(self) -> float:
        return self.now.timestamp()

    def utcnow(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_repo() -> InMemoryCacheRepository:
    return InMemoryCacheRepository()


@pytest.fixture
def query_cache(cache_repo: InMemoryCacheRepository, clock: FakeClock) -> QueryCache:
    return QueryCache(cache_repo, now_fn=clock.epoch)


@pytest_asyncio.fixture
async def sqlite_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with all tables created.

    StaticPool keeps one connection so every session sees the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def sqlite_session(sqlite_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSession(sqlite_engine) as session:
        yield session


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(database_url, poolclass=NullPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def postgres_session(postgres_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSession(postgres_engine) as session:
        yield session
        await session.rollback()


@pytest.fixture
def handoff_payload() -> dict:
    """Valid handoff contents; daily totals sum to 100 USD."""
    return {
        "chat_history": [
            {"role": "user", "content": "A week in Portugal in June", "timestamp": "2026-05-01T10:00:00Z"},
            {"role": "assistant", "content": "Here is a coastal plan", "timestamp": "2026-05-01T10:00:05Z"},
        ],
        "research_summary": "June is warm; book Sintra tickets ahead.",
        "user_preferences": {
            "luxury_level": "comfort",
            "activity_level": "moderate",
            "transport": "train",
            "days": 2,
            "adults": 2,
        },
        "all_flight_options": [
            {
                "id": "fl-1",
                "carrier": "TP",
                "from_airport": "JFK",
                "to_airport": "LIS",
                "price_low": 520,
                "price_high": 780,
                "provider": "amadeus",
            }
        ],
        "selected_flight_id": "fl-1",
        "all_hotel_options": [
            {
                "id": "ht-1",
                "name": "Casa do Rio",
                "city": "Lisbon",
                "star_rating": 4,
                "nightly_price_low": 140,
                "nightly_price_high": 190,
            }
        ],
        "selected_hotel_ids": ["ht-1"],
        "daily_itinerary": [
            {
                "day": 1,
                "date": "2026-06-10",
                "location": "Lisbon",
                "activities": [
                    {
                        "time": "10:00",
                        "name": "Alfama walking tour",
                        "activity_type": "paid_tour",
                        "cost_usd": 35,
                        "why_we_suggest": "Best way to see the old town",
                    }
                ],
                "daily_total_usd": 60,
            },
            {
                "day": 2,
                "date": "2026-06-11",
                "location": "Sintra",
                "activities": [],
                "daily_total_usd": 40,
            },
        ],
    }
