"""Common types and enums shared across all models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class LuxuryTier(str, Enum):
    """Accommodation tier requested by the traveller."""

    budget = "budget"
    comfort = "comfort"
    premium = "premium"
    luxury = "luxury"


class ActivityLevel(str, Enum):
    """Daily pace requested by the traveller."""

    relaxed = "relaxed"
    moderate = "moderate"
    active = "active"


class RouteType(str, Enum):
    """Flight itinerary shape."""

    round_trip = "round_trip"
    one_way = "one_way"


class ResolutionMethod(str, Enum):
    """Strategy that produced a city code."""

    api = "api"
    web_search = "web-search"
    fallback = "fallback"


class Provenance(BaseModel):
    """Provenance metadata for provider results."""

    source: str  # Provider-specific identifier (e.g., "provider.amadeus.flights")
    ref_id: str | None = None
    source_url: str | None = None
    fetched_at: datetime
    cache_hit: bool | None = None
