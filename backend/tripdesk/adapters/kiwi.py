"""Kiwi Tequila flight search adapter (fallback flight provider)."""

from typing import Any

import httpx

from backend.tripdesk.adapters.base import ProviderAdapter, price_band
from backend.tripdesk.adapters.provenance import provenance_for_http
from backend.tripdesk.cache.query_cache import TTL_FLIGHTS, QueryCache
from backend.tripdesk.errors import NoResultsError
from backend.tripdesk.models.common import RouteType
from backend.tripdesk.models.providers import FlightCriteria, FlightOffer, FlightQuote


class KiwiFlightAdapter(ProviderAdapter):
    """Month-window price band from Kiwi's search endpoint."""

    name = "kiwi"

    def __init__(
        self,
        api_key: str,
        cache: QueryCache,
        base_url: str = "https://tequila-api.kiwi.com",
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        ttl_seconds: int = TTL_FLIGHTS,
    ) -> None:
        super().__init__(cache, client, timeout)
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._ttl_seconds = ttl_seconds

    async def search_flights(self, criteria: FlightCriteria) -> FlightQuote:
        """Price band for a route across the whole month."""
        return await self._cached(
            "flights",
            criteria.model_dump(mode="json"),
            self._ttl_seconds,
            FlightQuote,
            lambda: self._fetch(criteria),
        )

    async def _fetch(self, criteria: FlightCriteria) -> FlightQuote:
        url = f"{self._base_url}/v2/search"
        params: dict[str, Any] = {
            "fly_from": criteria.origin,
            "fly_to": criteria.destination,
            "date_from": f"{criteria.month}-01",
            "date_to": f"{criteria.month}-28",
            "adults": criteria.adults,
            "curr": "USD",
            "limit": 50,
        }
        if criteria.route_type == RouteType.round_trip:
            params["return_from"] = f"{criteria.month}-01"
            params["return_to"] = f"{criteria.month}-28"

        data = await self._send("GET", url, params=params, headers={"apikey": self._api_key})
        itineraries = data.get("data") or []

        try:
            prices = [float(item["price"]) for item in itineraries]
        except (KeyError, TypeError, ValueError) as e:
            raise self._malformed(e) from e
        prices = [p for p in prices if p > 0]
        if not prices:
            raise NoResultsError(self.name, f"no flights {criteria.origin}-{criteria.destination}")

        low, median, high = price_band(prices)
        airlines = itineraries[0].get("airlines") or []
        route_label = "round-trip" if criteria.route_type == RouteType.round_trip else "one-way"

        return FlightQuote(
            provider=self.name,
            route=f"{criteria.origin}-{criteria.destination} {route_label}",
            offers=[
                FlightOffer(
                    price_low=low,
                    price_median=median,
                    price_high=high,
                    carrier=airlines[0] if airlines else "Multiple carriers",
                    route_type=criteria.route_type,
                    estimate_date=criteria.month,
                )
            ],
            provenance=provenance_for_http("kiwi.flights", url),
        )
