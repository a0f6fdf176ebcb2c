"""SQLAlchemy ORM models for cache, trips and handoffs."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class CacheEntry(Base):
    """Content-addressed provider response cache."""

    __tablename__ = "cache_providers"
    __table_args__ = (
        UniqueConstraint("provider", "query_hash", name="uq_cache_provider_hash"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provider: Mapped[str] = mapped_column(String(64), nullable=False)
    query_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    query_params: Mapped[str] = mapped_column(Text, nullable=False)
    response_json: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    ttl_seconds: Mapped[int] = mapped_column(Integer, nullable=False)


class ThemedTrip(Base):
    """Trip record advanced through the planning lifecycle."""

    __tablename__ = "themed_trips"
    __table_args__ = (Index("idx_trip_user", "user_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    template_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    intake_json: Mapped[dict[str, Any]] = mapped_column(JsonType, nullable=False)
    research_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    research_viewed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    options_json: Mapped[list[dict[str, Any]] | None] = mapped_column(JsonType, nullable=True)
    itinerary_json: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    selected_option_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class HandoffDocument(Base):
    """Frozen trip snapshot handed to a travel agent for quoting."""

    __tablename__ = "handoff_documents"
    __table_args__ = (
        UniqueConstraint("trip_id", name="uq_handoff_trip"),
        Index("idx_handoff_status_expiry", "quote_status", "expires_at"),
        Index("idx_handoff_agent", "agent_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    trip_id: Mapped[str] = mapped_column(String(36), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    chat_history: Mapped[list[dict[str, Any]]] = mapped_column(JsonType, nullable=False)
    research_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_preferences: Mapped[dict[str, Any]] = mapped_column(JsonType, nullable=False)
    all_flight_options: Mapped[list[dict[str, Any]]] = mapped_column(JsonType, nullable=False)
    selected_flight_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    all_hotel_options: Mapped[list[dict[str, Any]]] = mapped_column(JsonType, nullable=False)
    selected_hotel_ids: Mapped[list[str]] = mapped_column(JsonType, nullable=False)
    daily_itinerary: Mapped[list[dict[str, Any]]] = mapped_column(JsonType, nullable=False)
    total_estimate_usd: Mapped[float] = mapped_column(Float, nullable=False)
    margin_percent: Mapped[float] = mapped_column(Float, nullable=False)
    agent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    agent_quote_usd: Mapped[float | None] = mapped_column(Float, nullable=True)
    agent_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    quote_status: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    quoted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
