"""Handoff models - the frozen trip snapshot a travel agent quotes against."""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from backend.tripdesk.models.common import ActivityLevel, LuxuryTier

MAX_CHAT_MESSAGES = 100
MAX_MESSAGE_CHARS = 10_000


class QuoteStatus(str, Enum):
    """Handoff quoting status, persisted verbatim."""

    pending = "pending"
    quoted = "quoted"
    booked = "booked"
    cancelled = "cancelled"


class ChatMessage(BaseModel):
    """One turn of the planning conversation."""

    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_CHARS)
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Naive timestamps are taken as UTC so the history stays comparable."""
        return v if v.tzinfo is not None else v.replace(tzinfo=UTC)


class UserPreferences(BaseModel):
    """Traveller preferences captured at intake."""

    luxury_level: LuxuryTier
    activity_level: ActivityLevel
    transport: str = Field(..., min_length=1)
    days: int = Field(..., ge=1)
    adults: int = Field(..., ge=1)
    children: int = Field(0, ge=0)
    budget_usd: float | None = Field(None, ge=0)


class FlightOptionSnapshot(BaseModel):
    """Flight option shown to the traveller."""

    id: str = Field(..., min_length=1)
    carrier: str = Field(..., min_length=1)
    from_airport: str = Field(..., pattern=r"^[A-Z]{3}$")
    to_airport: str = Field(..., pattern=r"^[A-Z]{3}$")
    price_low: float = Field(..., ge=0)
    price_high: float = Field(..., ge=0)
    provider: str | None = None


class HotelOptionSnapshot(BaseModel):
    """Hotel option shown to the traveller."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    city: str | None = None
    star_rating: float = Field(..., ge=1, le=5)
    nightly_price_low: float = Field(..., ge=0)
    nightly_price_high: float = Field(..., ge=0)
    provider: str | None = None


class ItineraryActivity(BaseModel):
    """Scheduled activity within a day."""

    time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    name: str = Field(..., min_length=1)
    activity_type: Literal["paid_tour", "free", "meal", "transport"]
    cost_usd: float = Field(..., ge=0)
    why_we_suggest: str = Field(..., min_length=1)
    description: str | None = None


class ItineraryDay(BaseModel):
    """One day of the itinerary."""

    day: int = Field(..., ge=1)
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    location: str = Field(..., min_length=1)
    activities: list[ItineraryActivity] = Field(default_factory=list)
    daily_total_usd: float = Field(..., ge=0)


class HandoffDraft(BaseModel):
    """Validated handoff contents prior to persistence."""

    chat_history: Annotated[list[ChatMessage], Field(max_length=MAX_CHAT_MESSAGES)] = Field(
        default_factory=list
    )
    research_summary: str | None = None
    user_preferences: UserPreferences
    all_flight_options: list[FlightOptionSnapshot] = Field(default_factory=list)
    selected_flight_id: str | None = None
    all_hotel_options: list[HotelOptionSnapshot] = Field(default_factory=list)
    selected_hotel_ids: list[str] = Field(default_factory=list)
    daily_itinerary: Annotated[list[ItineraryDay], Field(min_length=1)]
    total_estimate_usd: float | None = None
    margin_percent: float | None = Field(None, ge=0)

    @field_validator("chat_history")
    @classmethod
    def validate_chronological(cls, v: list[ChatMessage]) -> list[ChatMessage]:
        """Ensure timestamps never go backwards."""
        for i in range(1, len(v)):
            if v[i].timestamp < v[i - 1].timestamp:
                raise ValueError(f"message {i} is earlier than message {i - 1}")
        return v

    @field_validator("daily_itinerary")
    @classmethod
    def validate_day_sequence(cls, v: list[ItineraryDay]) -> list[ItineraryDay]:
        """Ensure day numbers run 1, 2, 3, ... without gaps."""
        for i, day in enumerate(v, start=1):
            if day.day != i:
                raise ValueError(f"day numbers must be sequential from 1 (expected {i}, got {day.day})")
        return v

    @model_validator(mode="after")
    def default_total_estimate(self) -> "HandoffDraft":
        """Derive the estimate from daily totals when not supplied."""
        if self.total_estimate_usd is None:
            self.total_estimate_usd = round(sum(d.daily_total_usd for d in self.daily_itinerary), 2)
        if self.total_estimate_usd <= 0:
            raise ValueError("total_estimate_usd must be greater than 0")
        return self
