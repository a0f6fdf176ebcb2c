"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates:
- cache_providers (content-addressed provider cache)
- themed_trips
- handoff_documents
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables."""
    # cache_providers table
    op.create_table(
        "cache_providers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("provider", sa.String(64), nullable=False),
        sa.Column("query_hash", sa.String(64), nullable=False),
        sa.Column("query_params", sa.Text(), nullable=False),
        sa.Column("response_json", sa.Text(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("ttl_seconds", sa.Integer(), nullable=False),
        sa.UniqueConstraint("provider", "query_hash", name="uq_cache_provider_hash"),
    )

    # themed_trips table
    op.create_table(
        "themed_trips",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("template_id", sa.String(64), nullable=True),
        sa.Column("intake_json", postgresql.JSONB(), nullable=False),
        sa.Column("research_summary", sa.Text(), nullable=True),
        sa.Column("research_viewed", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("options_json", postgresql.JSONB(), nullable=True),
        sa.Column("itinerary_json", postgresql.JSONB(), nullable=True),
        sa.Column("selected_option_index", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("idx_trip_user", "themed_trips", ["user_id"])

    # handoff_documents table
    op.create_table(
        "handoff_documents",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("trip_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("chat_history", postgresql.JSONB(), nullable=False),
        sa.Column("research_summary", sa.Text(), nullable=True),
        sa.Column("user_preferences", postgresql.JSONB(), nullable=False),
        sa.Column("all_flight_options", postgresql.JSONB(), nullable=False),
        sa.Column("selected_flight_id", sa.String(128), nullable=True),
        sa.Column("all_hotel_options", postgresql.JSONB(), nullable=False),
        sa.Column("selected_hotel_ids", postgresql.JSONB(), nullable=False),
        sa.Column("daily_itinerary", postgresql.JSONB(), nullable=False),
        sa.Column("total_estimate_usd", sa.Float(), nullable=False),
        sa.Column("margin_percent", sa.Float(), nullable=False),
        sa.Column("agent_id", sa.String(64), nullable=True),
        sa.Column("agent_quote_usd", sa.Float(), nullable=True),
        sa.Column("agent_notes", sa.Text(), nullable=True),
        sa.Column("quote_status", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("quoted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("trip_id", name="uq_handoff_trip"),
    )
    op.create_index("idx_handoff_status_expiry", "handoff_documents", ["quote_status", "expires_at"])
    op.create_index("idx_handoff_agent", "handoff_documents", ["agent_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("idx_handoff_agent", table_name="handoff_documents")
    op.drop_index("idx_handoff_status_expiry", table_name="handoff_documents")
    op.drop_table("handoff_documents")
    op.drop_index("idx_trip_user", table_name="themed_trips")
    op.drop_table("themed_trips")
    op.drop_table("cache_providers")
