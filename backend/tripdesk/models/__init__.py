"""Models package - re-exports for convenience."""

from backend.tripdesk.models.common import (
    ActivityLevel,
    LuxuryTier,
    Provenance,
    ResolutionMethod,
    RouteType,
)
from backend.tripdesk.models.handoff import (
    ChatMessage,
    FlightOptionSnapshot,
    HandoffDraft,
    HotelOptionSnapshot,
    ItineraryActivity,
    ItineraryDay,
    QuoteStatus,
    UserPreferences,
)
from backend.tripdesk.models.providers import (
    FlightCriteria,
    FlightOffer,
    FlightQuote,
    HotelCriteria,
    HotelListing,
    HotelResult,
    LocationCandidate,
    ResolvedCity,
    SearchCriteria,
    SearchHit,
    SearchResult,
)
from backend.tripdesk.models.trip import ResearchStatus, TripStatus

__all__ = [
    # Common
    "ActivityLevel",
    "LuxuryTier",
    "Provenance",
    "ResolutionMethod",
    "RouteType",
    # Providers
    "FlightCriteria",
    "FlightOffer",
    "FlightQuote",
    "HotelCriteria",
    "HotelListing",
    "HotelResult",
    "LocationCandidate",
    "ResolvedCity",
    "SearchCriteria",
    "SearchHit",
    "SearchResult",
    # Trip
    "ResearchStatus",
    "TripStatus",
    # Handoff
    "ChatMessage",
    "FlightOptionSnapshot",
    "HandoffDraft",
    "HotelOptionSnapshot",
    "ItineraryActivity",
    "ItineraryDay",
    "QuoteStatus",
    "UserPreferences",
]
