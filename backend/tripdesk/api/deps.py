"""FastAPI dependency wiring for caches, provider chains and lifecycles."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.tripdesk.adapters.amadeus import (
    AmadeusClient,
    AmadeusFlightAdapter,
    AmadeusHotelAdapter,
    OAuthTokenCache,
)
from backend.tripdesk.adapters.kiwi import KiwiFlightAdapter
from backend.tripdesk.adapters.serper import SerperHotelAdapter, SerperSearchAdapter
from backend.tripdesk.adapters.tavily import TavilySearchAdapter
from backend.tripdesk.cache.query_cache import QueryCache
from backend.tripdesk.config import Settings, get_settings
from backend.tripdesk.db.engine import get_session
from backend.tripdesk.db.sql_repositories import (
    SqlCacheRepository,
    SqlHandoffRepository,
    SqlTripRepository,
)
from backend.tripdesk.services.city_resolver import CityResolver
from backend.tripdesk.services.fallback import (
    FallbackOrchestrator,
    FlightProvider,
    HotelProvider,
    SearchProvider,
)
from backend.tripdesk.services.handoff_lifecycle import HandoffLifecycle
from backend.tripdesk.services.trip_lifecycle import TripLifecycle
from backend.tripdesk.utils.metrics import PrometheusProviderMetrics


@lru_cache
def get_token_cache() -> OAuthTokenCache:
    """Process-wide Amadeus token cache."""
    settings = get_settings()
    return OAuthTokenCache(
        client_id=settings.amadeus_client_id,
        client_secret=settings.amadeus_client_secret,
        token_url=f"{settings.amadeus_base_url.rstrip('/')}/v1/security/oauth2/token",
        margin_seconds=settings.token_refresh_margin_seconds,
    )


def build_orchestrator(
    settings: Settings,
    cache: QueryCache,
    token_cache: OAuthTokenCache,
) -> FallbackOrchestrator:
    """Assemble fallback chains from the providers that have credentials.

    Declared order is primary first: Amadeus then Kiwi for flights,
    Amadeus then Serper for hotels, Serper then Tavily for search.
    """
    metrics = PrometheusProviderMetrics()
    timeout = settings.http_timeout_seconds

    search_providers: list[SearchProvider] = []
    if settings.serper_api_key:
        search_providers.append(
            SerperSearchAdapter(
                settings.serper_api_key,
                cache,
                base_url=settings.serper_base_url,
                timeout=timeout,
                ttl_seconds=settings.ttl_search_seconds,
            )
        )
    if settings.tavily_api_key:
        search_providers.append(
            TavilySearchAdapter(
                settings.tavily_api_key,
                cache,
                base_url=settings.tavily_base_url,
                timeout=timeout,
                ttl_seconds=settings.ttl_search_seconds,
            )
        )
    search_chain = FallbackOrchestrator(search_providers=search_providers, metrics=metrics)

    amadeus: AmadeusClient | None = None
    if settings.amadeus_client_id and settings.amadeus_client_secret:
        amadeus = AmadeusClient(token_cache, base_url=settings.amadeus_base_url, timeout=timeout)

    resolver = CityResolver(
        cache,
        directory=amadeus,
        web_search=search_chain.web_search,
        metrics=metrics,
        ttl_match_seconds=settings.ttl_city_match_seconds,
        ttl_fallback_seconds=settings.ttl_city_fallback_seconds,
    )

    flight_providers: list[FlightProvider] = []
    hotel_providers: list[HotelProvider] = []
    if amadeus is not None:
        flight_providers.append(
            AmadeusFlightAdapter(amadeus, cache, ttl_seconds=settings.ttl_flights_seconds)
        )
        hotel_providers.append(
            AmadeusHotelAdapter(amadeus, cache, resolver, ttl_seconds=settings.ttl_hotels_seconds)
        )
    if settings.kiwi_api_key:
        flight_providers.append(
            KiwiFlightAdapter(
                settings.kiwi_api_key,
                cache,
                base_url=settings.kiwi_base_url,
                timeout=timeout,
                ttl_seconds=settings.ttl_flights_seconds,
            )
        )
    if settings.serper_api_key:
        hotel_providers.append(
            SerperHotelAdapter(
                settings.serper_api_key,
                cache,
                base_url=settings.serper_base_url,
                timeout=timeout,
                ttl_seconds=settings.ttl_hotels_seconds,
            )
        )

    return FallbackOrchestrator(
        flight_providers=flight_providers,
        hotel_providers=hotel_providers,
        search_providers=search_providers,
        metrics=metrics,
    )


def get_query_cache(session: Annotated[AsyncSession, Depends(get_session)]) -> QueryCache:
    """Request-scoped cache over the SQL store."""
    return QueryCache(SqlCacheRepository(session))


def get_orchestrator(cache: Annotated[QueryCache, Depends(get_query_cache)]) -> FallbackOrchestrator:
    """Request-scoped provider chains."""
    return build_orchestrator(get_settings(), cache, get_token_cache())


def get_trip_lifecycle(session: Annotated[AsyncSession, Depends(get_session)]) -> TripLifecycle:
    """Request-scoped trip lifecycle."""
    return TripLifecycle(SqlTripRepository(session))


def get_handoff_lifecycle(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> HandoffLifecycle:
    """Request-scoped handoff lifecycle."""
    settings = get_settings()
    return HandoffLifecycle(
        SqlHandoffRepository(session),
        ttl_days=settings.handoff_ttl_days,
        margin_percent=settings.handoff_margin_percent,
        chat_history_limit=settings.chat_history_limit,
    )
