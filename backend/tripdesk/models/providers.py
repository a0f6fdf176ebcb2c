"""Provider models - search criteria and normalized upstream shapes."""

from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator

from backend.tripdesk.models.common import LuxuryTier, Provenance, ResolutionMethod, RouteType

IataCode = Annotated[str, Field(pattern=r"^[A-Z]{3}$")]
YearMonth = Annotated[str, Field(pattern=r"^\d{4}-\d{2}$")]
IsoDate = Annotated[str, Field(pattern=r"^\d{4}-\d{2}-\d{2}$")]


class FlightCriteria(BaseModel):
    """Flight price-estimate request."""

    origin: IataCode
    destination: IataCode
    month: YearMonth
    adults: int = Field(2, ge=1)
    route_type: RouteType = RouteType.round_trip

    @field_validator("month")
    @classmethod
    def validate_month_range(cls, v: str) -> str:
        """Ensure the month component is 01-12."""
        if not 1 <= int(v[5:7]) <= 12:
            raise ValueError("month must be between 01 and 12")
        return v


class HotelCriteria(BaseModel):
    """Hotel availability request for one city stay."""

    city: str = Field(..., min_length=1)
    country: str | None = Field(None, min_length=2, max_length=2)
    checkin: IsoDate
    nights: int = Field(..., ge=1)
    luxury: LuxuryTier = LuxuryTier.comfort
    adults: int = Field(2, ge=1)


class SearchCriteria(BaseModel):
    """Web search request."""

    query: str = Field(..., min_length=3, max_length=200)
    city: str | None = None
    month: str | None = None
    max_results: int = Field(5, ge=1, le=20)

    def cache_key(self) -> str:
        """Composite key shared by both search providers.

        Adapters hash it together with the full query, so two queries sharing
        a 20-character prefix never share a cache entry.
        """
        head = "_".join(self.query[:20].split())
        return f"{self.city or 'global'}_{head}_{self.month or 'any'}"


class FlightOffer(BaseModel):
    """Price band for one route and month."""

    price_low: float
    price_median: float
    price_high: float
    carrier: str
    route_type: RouteType
    estimate_date: str


class FlightQuote(BaseModel):
    """Normalized flight search result."""

    provider: str
    route: str
    offers: list[FlightOffer]
    cached: bool = False
    cache_age_seconds: int | None = None
    provenance: Provenance


class HotelListing(BaseModel):
    """One ranked hotel with its nightly price band."""

    hotel_id: str | None = None
    name: str
    city: str
    star_rating: float
    nightly_price_low: int
    nightly_price_high: int
    budget_tier: LuxuryTier
    provider: str
    booking_reference: str | None = None
    availability_disclaimer: str = "availability not guaranteed"


class HotelResult(BaseModel):
    """Normalized hotel search result (2-3 listings)."""

    provider: str
    city: str
    hotels: list[HotelListing]
    cached: bool = False
    cache_age_seconds: int | None = None
    provenance: Provenance


class SearchHit(BaseModel):
    """Ranked web search hit."""

    title: str
    url: str
    snippet: str = ""
    position: int
    relevance_score: float | None = None


class SearchResult(BaseModel):
    """Normalized web search result."""

    provider: str
    query: str
    cache_key: str
    results: list[SearchHit]
    answer: str | None = None
    cached: bool = False
    cache_age_seconds: int | None = None
    provenance: Provenance


class LocationCandidate(BaseModel):
    """Entry from the location directory."""

    iata_code: str
    name: str
    country_code: str | None = None
    sub_type: str | None = None


class ResolvedCity(BaseModel):
    """City code with the strategy that produced it."""

    city_code: str
    method: ResolutionMethod
    source: str
    cached: bool = False


def cached_payload(model: BaseModel) -> dict[str, Any]:
    """Serialize a result for storage, dropping per-read annotations."""
    return model.model_dump(mode="json", exclude={"cached", "cache_age_seconds"})
