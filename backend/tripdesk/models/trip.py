"""Trip models - lifecycle status and research gate view."""

from enum import Enum

from pydantic import BaseModel


class TripStatus(str, Enum):
    """Trip lifecycle status, persisted verbatim."""

    intake = "intake"
    researching = "researching"
    research_complete = "research_complete"
    options_ready = "options_ready"
    option_selected = "option_selected"
    ab_ready = "ab_ready"

    @property
    def rank(self) -> int:
        """Position in the forward-only lifecycle."""
        return _TRIP_ORDER.index(self)


_TRIP_ORDER = list(TripStatus)


class ResearchStatus(BaseModel):
    """Research gate state for a trip."""

    trip_id: str
    has_research: bool
    research_viewed: bool
    can_generate_options: bool
    research_summary: str | None = None
