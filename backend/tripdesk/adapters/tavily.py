"""Tavily web search adapter (fallback search provider)."""

import httpx

from backend.tripdesk.adapters.base import ProviderAdapter
from backend.tripdesk.adapters.provenance import provenance_for_http
from backend.tripdesk.cache.query_cache import TTL_SEARCH, QueryCache
from backend.tripdesk.errors import NoResultsError
from backend.tripdesk.models.providers import SearchCriteria, SearchHit, SearchResult


class TavilySearchAdapter(ProviderAdapter):
    """Ranked web results scored by Tavily."""

    name = "tavily"

    def __init__(
        self,
        api_key: str,
        cache: QueryCache,
        base_url: str = "https://api.tavily.com",
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        ttl_seconds: int = TTL_SEARCH,
    ) -> None:
        super().__init__(cache, client, timeout)
        self._api_key = api_key
        self._url = f"{base_url.rstrip('/')}/search"
        self._ttl_seconds = ttl_seconds

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
        # Tavily authenticates in the body, not a header
        data = await self._send(
            "POST",
            self._url,
            json={
                "api_key": self._api_key,
                "query": criteria.query,
                "search_depth": "basic",
                "max_results": criteria.max_results,
            },
        )

        try:
            hits = [
                SearchHit(
                    title=r["title"],
                    url=r["url"],
                    snippet=r.get("content") or "",
                    position=i,
                    relevance_score=r.get("score"),
                )
                for i, r in enumerate(data.get("results") or [], start=1)
            ]
        except (KeyError, TypeError) as e:
            raise self._malformed(e) from e

        answer = data.get("answer")
        if not hits and not answer:
            raise NoResultsError(self.name, f"no results for {criteria.query!r}")

        return SearchResult(
            provider=self.name,
            query=criteria.query,
            cache_key=cache_key,
            results=hits,
            answer=answer,
            provenance=provenance_for_http("tavily.search", self._url),
        )
