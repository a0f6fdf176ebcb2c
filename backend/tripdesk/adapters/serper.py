"""Serper (Google results) adapters: hotel fallback and primary web search."""

import math
import re

import httpx

from backend.tripdesk.adapters.base import ProviderAdapter
from backend.tripdesk.adapters.provenance import provenance_for_http
from backend.tripdesk.cache.query_cache import TTL_HOTELS, TTL_SEARCH, QueryCache
from backend.tripdesk.errors import NoResultsError
from backend.tripdesk.models.providers import (
    HotelCriteria,
    HotelListing,
    HotelResult,
    SearchCriteria,
    SearchHit,
    SearchResult,
)

PRICE_PATTERN = re.compile(r"\$(\d+)")
DEFAULT_NIGHTLY_USD = 120
DEFAULT_STAR_RATING = 3.5
MAX_LISTINGS = 3


class SerperClient(ProviderAdapter):
    """POST /search with the X-API-KEY header."""

    name = "serper"
    default_ttl_seconds: int = TTL_SEARCH

    def __init__(
        self,
        api_key: str,
        cache: QueryCache,
        base_url: str = "https://google.serper.dev",
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        ttl_seconds: int | None = None,
    ) -> None:
        super().__init__(cache, client, timeout)
        self._api_key = api_key
        self._url = f"{base_url.rstrip('/')}/search"
        self._ttl_seconds = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds

    async def _search(self, body: dict[str, object]) -> dict:
        return await self._send("POST", self._url, json=body, headers={"X-API-KEY": self._api_key})


class SerperHotelAdapter(SerperClient):
    """Hotel names and rough prices scraped from organic results."""

    default_ttl_seconds = TTL_HOTELS

    async def search_hotels(self, criteria: HotelCriteria) -> HotelResult:
        """Up to three organic hotel results with an estimated nightly band."""
        return await self._cached(
            "hotels",
            criteria.model_dump(mode="json"),
            self._ttl_seconds,
            HotelResult,
            lambda: self._fetch(criteria),
        )

    async def _fetch(self, criteria: HotelCriteria) -> HotelResult:
        data = await self._search({"q": f"hotels in {criteria.city}", "gl": "us"})
        organic = [r for r in data.get("organic") or [] if r.get("title") and r.get("link")]
        if not organic:
            raise NoResultsError(self.name, f"no hotel results for {criteria.city}")

        listings = []
        for result in organic[:MAX_LISTINGS]:
            match = PRICE_PATTERN.search(result.get("snippet") or "")
            nightly = int(match.group(1)) if match else DEFAULT_NIGHTLY_USD
            listings.append(
                HotelListing(
                    name=result["title"],
                    city=criteria.city,
                    star_rating=DEFAULT_STAR_RATING,
                    nightly_price_low=math.floor(nightly * 0.9),
                    nightly_price_high=math.ceil(nightly * 1.1),
                    budget_tier=criteria.luxury,
                    provider=self.name,
                    booking_reference=result["link"],
                )
            )

        return HotelResult(
            provider=self.name,
            city=criteria.city,
            hotels=listings,
            provenance=provenance_for_http("serper.hotels", self._url),
        )


class SerperSearchAdapter(SerperClient):
    """Ranked web results plus the answer box, when Google shows one."""

    default_ttl_seconds = TTL_SEARCH

    async def web_search(self, criteria: SearchCriteria) -> SearchResult:
        """Ranked title/url/snippet list for a query."""
        cache_key = criteria.cache_key()
        return await self._cached(
            "search",
            {"cache_key": cache_key, "query": criteria.query, "max_results": criteria.max_results},
            self._ttl_seconds,
            SearchResult,
            lambda: self._fetch(criteria, cache_key),
        )

    async def _fetch(self, criteria: SearchCriteria, cache_key: str) -> SearchResult:
        data = await self._search({"q": criteria.query, "num": criteria.max_results})

        hits = [
            SearchHit(
                title=r["title"],
                url=r["link"],
                snippet=r.get("snippet") or "",
                position=r.get("position") or i,
            )
            for i, r in enumerate(data.get("organic") or [], start=1)
            if r.get("title") and r.get("link")
        ]
        answer_box = data.get("answerBox") or {}
        answer = answer_box.get("answer") or answer_box.get("snippet")

        if not hits and not answer:
            raise NoResultsError(self.name, f"no results for {criteria.query!r}")

        return SearchResult(
            provider=self.name,
            query=criteria.query,
            cache_key=cache_key,
            results=hits[: criteria.max_results],
            answer=answer,
            provenance=provenance_for_http("serper.search", self._url),
        )
