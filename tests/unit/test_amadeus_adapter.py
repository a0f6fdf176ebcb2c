"""Tests for the Amadeus token cache and flight/hotel adapters."""

import math
from collections import Counter

import httpx
import pytest

from backend.tripdesk.adapters.amadeus import (
    AmadeusClient,
    AmadeusFlightAdapter,
    AmadeusHotelAdapter,
    OAuthTokenCache,
)
from backend.tripdesk.cache.query_cache import QueryCache
from backend.tripdesk.db.inmemory import InMemoryCacheRepository
from backend.tripdesk.errors import NoResultsError, ProviderUnavailableError
from backend.tripdesk.models.common import LuxuryTier, ResolutionMethod, RouteType
from backend.tripdesk.models.providers import FlightCriteria, HotelCriteria, ResolvedCity

BASE_URL = "https://test.api.amadeus.com"
TOKEN_PATH = "/v1/security/oauth2/token"

FLIGHT_OFFERS = {
    "data": [
        {"price": {"total": "450.00"}, "validatingAirlineCodes": ["BA"]},
        {"price": {"total": "300.00"}, "validatingAirlineCodes": ["VS"]},
        {"price": {"total": "0"}, "validatingAirlineCodes": ["XX"]},
        {"price": {"total": "520.50"}, "validatingAirlineCodes": ["AA"]},
        {"price": {"total": "610.00"}, "validatingAirlineCodes": ["DL"]},
    ]
}


class AmadeusStub:
    """MockTransport handler routing by path and counting calls."""

    def __init__(self, routes: dict[str, tuple[int, dict | list]]) -> None:
        self.routes = routes
        self.calls: Counter[str] = Counter()
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls[request.url.path] += 1
        self.requests.append(request)
        if request.url.path == TOKEN_PATH:
            return httpx.Response(200, json={"access_token": "tok-1", "expires_in": 1799})
        status, body = self.routes.get(request.url.path, (404, {}))
        return httpx.Response(status, json=body)

    def last(self, path: str) -> httpx.Request:
        return [r for r in self.requests if r.url.path == path][-1]


def make_api(stub: AmadeusStub, clock) -> tuple[AmadeusClient, OAuthTokenCache, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    tokens = OAuthTokenCache("id", "secret", f"{BASE_URL}{TOKEN_PATH}", now_fn=clock.epoch)
    return AmadeusClient(tokens, base_url=BASE_URL, client=client), tokens, client


class StubResolver:
    """Resolver returning a fixed code."""

    def __init__(self, code: str = "PAR") -> None:
        self.code = code
        self.calls: list[tuple[str, str | None]] = []

    async def resolve(self, city: str, country: str | None = None) -> ResolvedCity:
        self.calls.append((city, country))
        return ResolvedCity(city_code=self.code, method=ResolutionMethod.api, source="Paris, FR")


class TestOAuthTokenCache:
    """Token refresh with a 60-second safety margin."""

    @pytest.mark.asyncio
    async def test_reuses_token_until_margin(self, clock) -> None:
        stub = AmadeusStub({})
        _, tokens, client = make_api(stub, clock)

        assert await tokens.refresh_if_expired(client) == "tok-1"
        clock.advance(seconds=1799 - 60 - 1)
        await tokens.refresh_if_expired(client)

        assert stub.calls[TOKEN_PATH] == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_refreshes_once_margin_passes(self, clock) -> None:
        stub = AmadeusStub({})
        _, tokens, client = make_api(stub, clock)

        await tokens.refresh_if_expired(client)
        clock.advance(seconds=1799 - 60)
        assert tokens.is_expired()
        await tokens.refresh_if_expired(client)

        assert stub.calls[TOKEN_PATH] == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_sends_client_credentials_form(self, clock) -> None:
        stub = AmadeusStub({})
        _, tokens, client = make_api(stub, clock)

        await tokens.refresh_if_expired(client)

        body = stub.last(TOKEN_PATH).content.decode()
        assert "grant_type=client_credentials" in body
        assert "client_id=id" in body
        await client.aclose()

    @pytest.mark.asyncio
    async def test_token_endpoint_failure_is_provider_unavailable(self, clock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "invalid_client"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        tokens = OAuthTokenCache("id", "bad", f"{BASE_URL}{TOKEN_PATH}", now_fn=clock.epoch)

        with pytest.raises(ProviderUnavailableError):
            await tokens.refresh_if_expired(client)
        assert tokens.is_expired()
        await client.aclose()


class TestAmadeusFlights:
    """Flight offers normalization and caching."""

    @pytest.mark.asyncio
    async def test_normalizes_price_band(self, query_cache: QueryCache, clock) -> None:
        stub = AmadeusStub({"/v2/shopping/flight-offers": (200, FLIGHT_OFFERS)})
        api, _, client = make_api(stub, clock)
        adapter = AmadeusFlightAdapter(api, query_cache)

        quote = await adapter.search_flights(
            FlightCriteria(origin="JFK", destination="LHR", month="2026-06")
        )

        offer = quote.offers[0]
        assert quote.provider == "amadeus"
        assert quote.route == "JFK-LHR round-trip"
        assert quote.cached is False
        # Zero price dropped; median is element n // 2 of [300, 450, 520.5, 610]
        assert (offer.price_low, offer.price_median, offer.price_high) == (300.0, 520.5, 610.0)
        assert offer.carrier == "BA"
        assert offer.route_type == RouteType.round_trip
        assert offer.estimate_date == "2026-06"
        assert quote.provenance.source == "provider.amadeus.flights"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_request_parameters(self, query_cache: QueryCache, clock) -> None:
        stub = AmadeusStub({"/v2/shopping/flight-offers": (200, FLIGHT_OFFERS)})
        api, _, client = make_api(stub, clock)
        adapter = AmadeusFlightAdapter(api, query_cache)

        await adapter.search_flights(
            FlightCriteria(origin="JFK", destination="LHR", month="2026-06", adults=3)
        )

        request = stub.last("/v2/shopping/flight-offers")
        assert request.headers["Authorization"] == "Bearer tok-1"
        assert request.url.params["originLocationCode"] == "JFK"
        assert request.url.params["departureDate"] == "2026-06-01"
        assert request.url.params["returnDate"] == "2026-06-08"
        assert request.url.params["adults"] == "3"
        assert request.url.params["currencyCode"] == "USD"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_one_way_omits_return_date(self, query_cache: QueryCache, clock) -> None:
        stub = AmadeusStub({"/v2/shopping/flight-offers": (200, FLIGHT_OFFERS)})
        api, _, client = make_api(stub, clock)
        adapter = AmadeusFlightAdapter(api, query_cache)

        quote = await adapter.search_flights(
            FlightCriteria(
                origin="JFK", destination="LHR", month="2026-06", route_type=RouteType.one_way
            )
        )

        assert "returnDate" not in stub.last("/v2/shopping/flight-offers").url.params
        assert quote.route == "JFK-LHR one-way"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self, query_cache: QueryCache, clock) -> None:
        stub = AmadeusStub({"/v2/shopping/flight-offers": (200, FLIGHT_OFFERS)})
        api, _, client = make_api(stub, clock)
        adapter = AmadeusFlightAdapter(api, query_cache)
        criteria = FlightCriteria(origin="JFK", destination="LHR", month="2026-06")

        await adapter.search_flights(criteria)
        clock.advance(seconds=120)
        cached = await adapter.search_flights(criteria)

        assert stub.calls["/v2/shopping/flight-offers"] == 1
        assert cached.cached is True
        assert cached.cache_age_seconds == 120
        assert cached.provenance.cache_hit is True
        assert cached.offers[0].price_low == 300.0
        await client.aclose()

    @pytest.mark.asyncio
    async def test_upstream_error_raises_and_caches_nothing(
        self, query_cache: QueryCache, cache_repo: InMemoryCacheRepository, clock
    ) -> None:
        stub = AmadeusStub({"/v2/shopping/flight-offers": (500, {})})
        api, _, client = make_api(stub, clock)
        adapter = AmadeusFlightAdapter(api, query_cache)

        with pytest.raises(ProviderUnavailableError) as exc_info:
            await adapter.search_flights(FlightCriteria(origin="JFK", destination="LHR", month="2026-06"))

        assert exc_info.value.reason == "HTTP 500"
        assert not isinstance(exc_info.value, NoResultsError)
        assert len(cache_repo) == 0
        await client.aclose()

    @pytest.mark.asyncio
    async def test_empty_offers_is_no_results(
        self, query_cache: QueryCache, cache_repo: InMemoryCacheRepository, clock
    ) -> None:
        stub = AmadeusStub({"/v2/shopping/flight-offers": (200, {"data": []})})
        api, _, client = make_api(stub, clock)
        adapter = AmadeusFlightAdapter(api, query_cache)

        with pytest.raises(NoResultsError):
            await adapter.search_flights(FlightCriteria(origin="JFK", destination="LHR", month="2026-06"))

        assert len(cache_repo) == 0
        await client.aclose()

    @pytest.mark.asyncio
    async def test_unauthorized_invalidates_token(self, query_cache: QueryCache, clock) -> None:
        stub = AmadeusStub({"/v2/shopping/flight-offers": (401, {})})
        api, tokens, client = make_api(stub, clock)
        adapter = AmadeusFlightAdapter(api, query_cache)

        with pytest.raises(ProviderUnavailableError):
            await adapter.search_flights(FlightCriteria(origin="JFK", destination="LHR", month="2026-06"))

        assert tokens.is_expired()
        await client.aclose()


class TestAmadeusLocations:
    """Location directory lookup."""

    @pytest.mark.asyncio
    async def test_preserves_upstream_order(self, clock) -> None:
        stub = AmadeusStub(
            {
                "/v1/reference-data/locations": (
                    200,
                    {
                        "data": [
                            {"iataCode": "YRK", "name": "YORK", "subType": "CITY", "address": {"countryCode": "US"}},
                            {"iataCode": "QQY", "name": "YORK", "subType": "CITY", "address": {"countryCode": "GB"}},
                            {"name": "no code"},
                        ]
                    },
                )
            }
        )
        api, _, client = make_api(stub, clock)

        candidates = await api.search_locations("York")

        assert [c.iata_code for c in candidates] == ["YRK", "QQY"]
        assert candidates[1].country_code == "GB"
        request = stub.last("/v1/reference-data/locations")
        assert request.url.params["keyword"] == "York"
        assert request.url.params["subType"] == "CITY,AIRPORT"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_list_body_is_provider_unavailable(self, clock) -> None:
        stub = AmadeusStub({"/v1/reference-data/locations": (200, [])})
        api, _, client = make_api(stub, clock)

        with pytest.raises(ProviderUnavailableError) as exc_info:
            await api.search_locations("York")
        assert exc_info.value.reason == "unexpected JSON list"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_skips_non_object_entries(self, clock) -> None:
        stub = AmadeusStub(
            {"/v1/reference-data/locations": (200, {"data": ["LHR", {"iataCode": "LON", "name": "LONDON"}]})}
        )
        api, _, client = make_api(stub, clock)

        candidates = await api.search_locations("London")

        assert [c.iata_code for c in candidates] == ["LON"]
        await client.aclose()


class TestAmadeusHotels:
    """Hotel search through city resolution, hotels-by-city and offers."""

    def hotel_routes(self) -> dict[str, tuple[int, dict]]:
        hotel_ids = [{"hotelId": f"H{i}"} for i in range(12)]
        offers = {
            "data": [
                {
                    "hotel": {"hotelId": "H0", "name": "Hotel Lumiere", "rating": "4"},
                    "offers": [{"price": {"total": "450.00"}}],
                },
                {
                    "hotel": {"hotelId": "H1", "name": "Le Petit"},
                    "offers": [{"price": {"total": "300.00"}}],
                },
                {
                    "hotel": {"hotelId": "H2", "name": "Grand Paris", "rating": "5"},
                    "offers": [{"price": {"total": "900.00"}}],
                },
                {
                    "hotel": {"hotelId": "H3", "name": "Fourth"},
                    "offers": [{"price": {"total": "100.00"}}],
                },
            ]
        }
        return {
            "/v1/reference-data/locations/hotels/by-city": (200, {"data": hotel_ids}),
            "/v3/shopping/hotel-offers": (200, offers),
        }

    @pytest.mark.asyncio
    async def test_normalizes_three_listings(self, query_cache: QueryCache, clock) -> None:
        stub = AmadeusStub(self.hotel_routes())
        api, _, client = make_api(stub, clock)
        resolver = StubResolver("PAR")
        adapter = AmadeusHotelAdapter(api, query_cache, resolver)

        result = await adapter.search_hotels(
            HotelCriteria(city="Paris", country="FR", checkin="2026-06-10", nights=3, luxury=LuxuryTier.premium)
        )

        assert resolver.calls == [("Paris", "FR")]
        assert result.provider == "amadeus"
        assert [h.name for h in result.hotels] == ["Hotel Lumiere", "Le Petit", "Grand Paris"]

        first = result.hotels[0]
        nightly = 450.0 / 3
        assert first.nightly_price_low == math.floor(nightly * 0.9)
        assert first.nightly_price_high == math.ceil(nightly * 1.1)
        assert first.nightly_price_low < nightly < first.nightly_price_high
        assert first.star_rating == 4.0
        assert first.budget_tier == LuxuryTier.premium
        assert first.availability_disclaimer == "availability not guaranteed"
        # Missing rating defaults to 3 stars
        assert result.hotels[1].star_rating == 3.0
        await client.aclose()

    @pytest.mark.asyncio
    async def test_request_parameters(self, query_cache: QueryCache, clock) -> None:
        stub = AmadeusStub(self.hotel_routes())
        api, _, client = make_api(stub, clock)
        adapter = AmadeusHotelAdapter(api, query_cache, StubResolver("PAR"))

        await adapter.search_hotels(HotelCriteria(city="Paris", checkin="2026-06-10", nights=3))

        by_city = stub.last("/v1/reference-data/locations/hotels/by-city")
        assert by_city.url.params["cityCode"] == "PAR"
        assert by_city.url.params["ratings"] == "3,4,5"

        offers = stub.last("/v3/shopping/hotel-offers")
        assert len(offers.url.params["hotelIds"].split(",")) == 10
        assert offers.url.params["checkInDate"] == "2026-06-10"
        assert offers.url.params["checkOutDate"] == "2026-06-13"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_no_hotels_in_city_is_no_results(self, query_cache: QueryCache, clock) -> None:
        stub = AmadeusStub(
            {"/v1/reference-data/locations/hotels/by-city": (200, {"data": []})}
        )
        api, _, client = make_api(stub, clock)
        adapter = AmadeusHotelAdapter(api, query_cache, StubResolver("ZZZ"))

        with pytest.raises(NoResultsError):
            await adapter.search_hotels(HotelCriteria(city="Nowhere", checkin="2026-06-10", nights=2))
        await client.aclose()
