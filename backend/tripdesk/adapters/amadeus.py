"""Amadeus Self-Service adapters: OAuth token cache, flights, hotels, locations."""

import logging
import math
import time
from collections.abc import Callable
from datetime import date, timedelta
from typing import Any, Protocol

import httpx

from backend.tripdesk.adapters.base import ProviderAdapter, price_band, send_json
from backend.tripdesk.adapters.provenance import provenance_for_http
from backend.tripdesk.cache.query_cache import TTL_FLIGHTS, TTL_HOTELS, QueryCache
from backend.tripdesk.errors import NoResultsError, ProviderUnavailableError
from backend.tripdesk.models.common import RouteType
from backend.tripdesk.models.providers import (
    FlightCriteria,
    FlightOffer,
    FlightQuote,
    HotelCriteria,
    HotelListing,
    HotelResult,
    LocationCandidate,
    ResolvedCity,
)

logger = logging.getLogger(__name__)

PROVIDER = "amadeus"
MAX_HOTEL_IDS = 10
MAX_LISTINGS = 3


class OAuthTokenCache:
    """Client-credentials bearer token, refreshed when it is about to expire.

    The only mutable state shared across requests. There is no lock:
    concurrent refreshes each fetch a valid token and the last one wins.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        token_url: str,
        margin_seconds: int = 60,
        now_fn: Callable[[], float] = time.time,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._margin_seconds = margin_seconds
        self._now_fn = now_fn
        self._token: str | None = None
        self._expires_at: float = 0.0

    @property
    def expires_at(self) -> float:
        return self._expires_at

    def is_expired(self) -> bool:
        """True when no token is held or its margin-adjusted expiry has passed."""
        return self._token is None or self._now_fn() >= self._expires_at

    def invalidate(self) -> None:
        """Forget the current token (e.g., after a 401)."""
        self._token = None
        self._expires_at = 0.0

    async def refresh_if_expired(
        self, client: httpx.AsyncClient | None = None, timeout: float = 10.0
    ) -> str:
        """Return a usable token, fetching a new one if needed.

        Raises:
            ProviderUnavailableError: If the token endpoint fails
        """
        if not self.is_expired() and self._token is not None:
            return self._token

        data = await send_json(
            PROVIDER,
            client,
            "POST",
            self._token_url,
            timeout,
            data={
                "grant_type": "client_credentials",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
            },
        )
        try:
            token = str(data["access_token"])
            expires_in = int(data["expires_in"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderUnavailableError(PROVIDER, "malformed token response") from e

        self._token = token
        self._expires_at = self._now_fn() + expires_in - self._margin_seconds
        logger.info("Refreshed %s access token (expires_in=%ds)", PROVIDER, expires_in)
        return token


class AmadeusClient:
    """Authenticated GET access to the Amadeus REST API."""

    def __init__(
        self,
        token_cache: OAuthTokenCache,
        base_url: str = "https://test.api.amadeus.com",
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._tokens = token_cache
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._timeout = timeout

    async def get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """GET a JSON resource with a bearer token."""
        token = await self._tokens.refresh_if_expired(self._client, self._timeout)
        try:
            return await send_json(
                PROVIDER,
                self._client,
                "GET",
                f"{self.base_url}{path}",
                self._timeout,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
        except ProviderUnavailableError as e:
            if e.reason == "HTTP 401":
                self._tokens.invalidate()
            raise

    async def search_locations(self, keyword: str) -> list[LocationCandidate]:
        """Look up cities and airports by keyword, in upstream order.

        Raises:
            ProviderUnavailableError: On upstream failure
        """
        data = await self.get(
            "/v1/reference-data/locations",
            {"keyword": keyword, "subType": "CITY,AIRPORT"},
        )
        candidates = []
        for item in data.get("data") or []:
            code = item.get("iataCode") if isinstance(item, dict) else None
            if not isinstance(code, str):
                continue
            candidates.append(
                LocationCandidate(
                    iata_code=code,
                    name=item.get("name") or keyword,
                    country_code=(item.get("address") or {}).get("countryCode"),
                    sub_type=item.get("subType"),
                )
            )
        return candidates


class CityCodeResolver(Protocol):
    """Anything that turns a city name into a city/airport code."""

    async def resolve(self, city: str, country: str | None = None) -> ResolvedCity:
        ...


class AmadeusFlightAdapter(ProviderAdapter):
    """Primary flight price estimates from Flight Offers Search."""

    name = PROVIDER

    def __init__(
        self,
        api: AmadeusClient,
        cache: QueryCache,
        ttl_seconds: int = TTL_FLIGHTS,
    ) -> None:
        super().__init__(cache)
        self._api = api
        self._ttl_seconds = ttl_seconds

    async def search_flights(self, criteria: FlightCriteria) -> FlightQuote:
        """Price band for a route and month."""
        return await self._cached(
            "flights",
            criteria.model_dump(mode="json"),
            self._ttl_seconds,
            FlightQuote,
            lambda: self._fetch(criteria),
        )

    async def _fetch(self, criteria: FlightCriteria) -> FlightQuote:
        path = "/v2/shopping/flight-offers"
        params: dict[str, Any] = {
            "originLocationCode": criteria.origin,
            "destinationLocationCode": criteria.destination,
            "departureDate": f"{criteria.month}-01",
            "adults": criteria.adults,
            "currencyCode": "USD",
            "max": 50,
        }
        if criteria.route_type == RouteType.round_trip:
            params["returnDate"] = f"{criteria.month}-08"

        data = await self._api.get(path, params)
        offers = data.get("data") or []

        try:
            prices = [float(o["price"]["total"]) for o in offers]
        except (KeyError, TypeError, ValueError) as e:
            raise self._malformed(e) from e
        prices = [p for p in prices if p > 0]
        if not prices:
            raise NoResultsError(self.name, f"no flight offers {criteria.origin}-{criteria.destination}")

        low, median, high = price_band(prices)
        carriers = offers[0].get("validatingAirlineCodes") or []
        route_label = "round-trip" if criteria.route_type == RouteType.round_trip else "one-way"

        return FlightQuote(
            provider=self.name,
            route=f"{criteria.origin}-{criteria.destination} {route_label}",
            offers=[
                FlightOffer(
                    price_low=low,
                    price_median=median,
                    price_high=high,
                    carrier=carriers[0] if carriers else "Multiple carriers",
                    route_type=criteria.route_type,
                    estimate_date=criteria.month,
                )
            ],
            provenance=provenance_for_http("amadeus.flights", f"{self._api.base_url}{path}"),
        )


class AmadeusHotelAdapter(ProviderAdapter):
    """Primary hotel listings: city code, then hotels-by-city, then live offers."""

    name = PROVIDER

    def __init__(
        self,
        api: AmadeusClient,
        cache: QueryCache,
        resolver: CityCodeResolver,
        ttl_seconds: int = TTL_HOTELS,
    ) -> None:
        super().__init__(cache)
        self._api = api
        self._resolver = resolver
        self._ttl_seconds = ttl_seconds

    async def search_hotels(self, criteria: HotelCriteria) -> HotelResult:
        """Up to three ranked hotels with nightly price bands."""
        return await self._cached(
            "hotels",
            criteria.model_dump(mode="json"),
            self._ttl_seconds,
            HotelResult,
            lambda: self._fetch(criteria),
        )

    async def _fetch(self, criteria: HotelCriteria) -> HotelResult:
        resolved = await self._resolver.resolve(criteria.city, criteria.country)

        by_city = await self._api.get(
            "/v1/reference-data/locations/hotels/by-city",
            {"cityCode": resolved.city_code, "radius": 50, "radiusUnit": "KM", "ratings": "3,4,5"},
        )
        hotel_ids = [
            h["hotelId"] for h in by_city.get("data") or [] if isinstance(h, dict) and h.get("hotelId")
        ]
        if not hotel_ids:
            raise NoResultsError(self.name, f"no hotels listed for {resolved.city_code}")

        checkout = date.fromisoformat(criteria.checkin) + timedelta(days=criteria.nights)
        path = "/v3/shopping/hotel-offers"
        offers = await self._api.get(
            path,
            {
                "hotelIds": ",".join(hotel_ids[:MAX_HOTEL_IDS]),
                "checkInDate": criteria.checkin,
                "checkOutDate": checkout.isoformat(),
                "adults": criteria.adults,
                "currency": "USD",
            },
        )

        listings = []
        try:
            for item in (offers.get("data") or [])[:MAX_LISTINGS]:
                hotel = item["hotel"]
                nightly = float(item["offers"][0]["price"]["total"]) / criteria.nights
                listings.append(
                    HotelListing(
                        hotel_id=hotel.get("hotelId"),
                        name=hotel.get("name") or "Unnamed hotel",
                        city=criteria.city,
                        star_rating=float(hotel.get("rating") or 3),
                        nightly_price_low=math.floor(nightly * 0.9),
                        nightly_price_high=math.ceil(nightly * 1.1),
                        budget_tier=criteria.luxury,
                        provider=self.name,
                    )
                )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise self._malformed(e) from e

        if not listings:
            raise NoResultsError(self.name, f"no hotel offers in {criteria.city}")

        return HotelResult(
            provider=self.name,
            city=criteria.city,
            hotels=listings,
            provenance=provenance_for_http("amadeus.hotels", f"{self._api.base_url}{path}"),
        )
