"""City name -> airport/city code resolution.

Three strategies, first success wins:

1. Location directory lookup (exact country match required when a country is given)
2. Web search for the nearest major airport, scanning for a 3-letter code
3. Static country -> hub table with a global default

The pipeline never raises; the last strategy always answers, tagged
method="fallback" so callers can judge confidence.
"""

import logging
import re
from collections.abc import Awaitable, Callable
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError

from backend.tripdesk.cache.query_cache import (
    TTL_CITY_FALLBACK,
    TTL_CITY_MATCH,
    QueryCache,
    hash_params,
)
from backend.tripdesk.errors import AllProvidersUnavailableError, ProviderUnavailableError
from backend.tripdesk.models.common import ResolutionMethod
from backend.tripdesk.models.providers import (
    LocationCandidate,
    ResolvedCity,
    SearchCriteria,
    SearchResult,
)
from backend.tripdesk.utils.logging import StructuredProviderLogger
from backend.tripdesk.utils.metrics import NullProviderMetrics, ProviderMetrics

logger = logging.getLogger(__name__)

CACHE_PROVIDER = "city-resolution"
IATA_TOKEN = re.compile(r"\b([A-Z]{3})\b")

COUNTRY_NAMES: dict[str, str] = {
    "GB": "United Kingdom",
    "IE": "Ireland",
    "FR": "France",
    "DE": "Germany",
    "IT": "Italy",
    "ES": "Spain",
    "NL": "Netherlands",
    "BE": "Belgium",
    "CH": "Switzerland",
    "AT": "Austria",
    "PT": "Portugal",
    "GR": "Greece",
}

HUB_AIRPORTS: dict[str, str] = {
    "GB": "LHR",
    "IE": "DUB",
    "FR": "CDG",
    "DE": "FRA",
    "IT": "FCO",
    "ES": "MAD",
    "NL": "AMS",
    "BE": "BRU",
}
DEFAULT_HUB = "LHR"


class LocationDirectory(Protocol):
    async def search_locations(self, keyword: str) -> list[LocationCandidate]:
        ...


WebSearch = Callable[[SearchCriteria], Awaitable[SearchResult]]


class CityResolver:
    """Resolves free-text cities to codes, caching every answer."""

    def __init__(
        self,
        cache: QueryCache,
        directory: LocationDirectory | None = None,
        web_search: WebSearch | None = None,
        metrics: ProviderMetrics | None = None,
        structured_logger: StructuredProviderLogger | None = None,
        ttl_match_seconds: int = TTL_CITY_MATCH,
        ttl_fallback_seconds: int = TTL_CITY_FALLBACK,
    ) -> None:
        self._cache = cache
        self._directory = directory
        self._web_search = web_search
        self._metrics = metrics or NullProviderMetrics()
        self._log = structured_logger or StructuredProviderLogger()
        self._ttl_match_seconds = ttl_match_seconds
        self._ttl_fallback_seconds = ttl_fallback_seconds

    async def resolve(self, city: str, country: str | None = None) -> ResolvedCity:
        """Resolve a city (and optional ISO country code) to a 3-letter code.

        Args:
            city: Free-text city name
            country: Optional ISO 3166 alpha-2 code, matched case-insensitively

        Returns:
            ResolvedCity with method and human-readable source
        """
        city = city.strip()
        country = country.strip().upper() if country else None
        key_params = {"type": CACHE_PROVIDER, "city": city, "country": country}
        query_hash = hash_params(key_params)

        try:
            hit = await self._cache.get(CACHE_PROVIDER, query_hash)
        except SQLAlchemyError as e:
            logger.warning("City cache read failed for %s: %s", city, type(e).__name__)
            hit = None
        if hit is not None:
            cached = ResolvedCity.model_validate(hit.response).model_copy(update={"cached": True})
            self._log.log_resolution(city, country, cached.city_code, cached.method.value, cached=True)
            return cached

        resolved = await self._from_directory(city, country)
        if resolved is None:
            resolved = await self._from_web_search(city, country)
        if resolved is None:
            resolved = self._from_country_default(country)

        ttl = (
            self._ttl_fallback_seconds
            if resolved.method == ResolutionMethod.fallback
            else self._ttl_match_seconds
        )
        try:
            await self._cache.set(
                CACHE_PROVIDER,
                query_hash,
                key_params,
                resolved.model_dump(mode="json", exclude={"cached"}),
                ttl,
            )
        except SQLAlchemyError as e:
            logger.warning("City cache write failed for %s: %s", city, type(e).__name__)

        self._log.log_resolution(city, country, resolved.city_code, resolved.method.value, cached=False)
        self._metrics.inc_resolution(resolved.method.value)
        return resolved

    async def _from_directory(self, city: str, country: str | None) -> ResolvedCity | None:
        if self._directory is None:
            return None

        try:
            candidates = await self._directory.search_locations(city)
        except ProviderUnavailableError as e:
            logger.warning("Location directory failed for %s: %s", city, e.reason)
            return None

        if country:
            # A wrong-country airport is worse than escalating to the next strategy
            match = next(
                (c for c in candidates if (c.country_code or "").upper() == country),
                None,
            )
        else:
            match = candidates[0] if candidates else None

        if match is None:
            return None

        return ResolvedCity(
            city_code=match.iata_code,
            method=ResolutionMethod.api,
            source=f"{match.name}, {match.country_code or 'unknown'}",
        )

    async def _from_web_search(self, city: str, country: str | None) -> ResolvedCity | None:
        if self._web_search is None:
            return None

        country_name = COUNTRY_NAMES.get(country) if country else None
        place = f"{city}, {country_name}" if country_name else city
        query = f"nearest major airport to {place} IATA code"[:200]

        try:
            # city scopes the search cache entry to this place
            criteria = SearchCriteria(query=query, city=f"{city}|{country or 'any'}", max_results=3)
            result = await self._web_search(criteria)
        except (ProviderUnavailableError, AllProvidersUnavailableError) as e:
            logger.warning("Airport web search failed for %s: %s", city, e)
            return None

        top = result.results[0] if result.results else None
        text = top.snippet if top and top.snippet else (result.answer or "")
        match = IATA_TOKEN.search(text)
        if match is None:
            return None

        return ResolvedCity(
            city_code=match.group(1),
            method=ResolutionMethod.web_search,
            source=f"Web search: {top.title if top else 'answer box'}",
        )

    def _from_country_default(self, country: str | None) -> ResolvedCity:
        return ResolvedCity(
            city_code=HUB_AIRPORTS.get(country or "", DEFAULT_HUB),
            method=ResolutionMethod.fallback,
            source=f"Country default for {country or 'unknown'}",
        )
