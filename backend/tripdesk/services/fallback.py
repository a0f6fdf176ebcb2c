"""Sequential provider fallback per capability.

Adapters are tried strictly in declared order, one upstream call each, with
no retries and no parallelism. The first success wins. When every adapter
fails the caller gets one of two distinct errors:

- NoResultsError if the last adapter answered but found nothing (404)
- AllProvidersUnavailableError otherwise (retryable, 503)
"""

import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from functools import partial
from typing import Protocol, TypeVar

from backend.tripdesk.errors import (
    AllProvidersUnavailableError,
    NoResultsError,
    ProviderAttempt,
    ProviderUnavailableError,
)
from backend.tripdesk.models.providers import (
    FlightCriteria,
    FlightQuote,
    HotelCriteria,
    HotelResult,
    SearchCriteria,
    SearchResult,
)
from backend.tripdesk.utils.logging import StructuredProviderLogger
from backend.tripdesk.utils.metrics import NullProviderMetrics, ProviderMetrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FlightProvider(Protocol):
    name: str

    async def search_flights(self, criteria: FlightCriteria) -> FlightQuote:
        ...


class HotelProvider(Protocol):
    name: str

    async def search_hotels(self, criteria: HotelCriteria) -> HotelResult:
        ...


class SearchProvider(Protocol):
    name: str

    async def web_search(self, criteria: SearchCriteria) -> SearchResult:
        ...


class FallbackOrchestrator:
    """Runs the flight, hotel and search fallback chains."""

    def __init__(
        self,
        flight_providers: Sequence[FlightProvider] = (),
        hotel_providers: Sequence[HotelProvider] = (),
        search_providers: Sequence[SearchProvider] = (),
        structured_logger: StructuredProviderLogger | None = None,
        metrics: ProviderMetrics | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._flight_providers = list(flight_providers)
        self._hotel_providers = list(hotel_providers)
        self._search_providers = list(search_providers)
        self._log = structured_logger or StructuredProviderLogger()
        self._metrics = metrics or NullProviderMetrics()
        self._clock = clock

    async def search_flights(self, criteria: FlightCriteria) -> FlightQuote:
        """First successful flight quote, primary before fallback."""
        return await self.run(
            "flights", [(p.name, partial(p.search_flights, criteria)) for p in self._flight_providers]
        )

    async def search_hotels(self, criteria: HotelCriteria) -> HotelResult:
        """First successful hotel result, primary before fallback."""
        return await self.run(
            "hotels", [(p.name, partial(p.search_hotels, criteria)) for p in self._hotel_providers]
        )

    async def web_search(self, criteria: SearchCriteria) -> SearchResult:
        """First successful web search, primary before fallback."""
        return await self.run(
            "search", [(p.name, partial(p.web_search, criteria)) for p in self._search_providers]
        )

    async def run(
        self,
        capability: str,
        calls: Sequence[tuple[str, Callable[[], Awaitable[T]]]],
    ) -> T:
        """Invoke calls in order until one succeeds.

        Args:
            capability: Capability label for logs and metrics
            calls: (provider name, zero-arg coroutine factory) pairs

        Returns:
            The first successful result

        Raises:
            NoResultsError: The final adapter answered with nothing
            AllProvidersUnavailableError: Every adapter failed (or none configured)
        """
        failures: list[ProviderAttempt] = []

        for attempt, (provider, call) in enumerate(calls, start=1):
            start = self._clock()
            try:
                result = await call()
            except ProviderUnavailableError as e:
                latency_ms = (self._clock() - start) * 1000
                no_results = isinstance(e, NoResultsError)
                outcome = "no_results" if no_results else "error"
                self._log.log_attempt(
                    provider, capability, attempt, outcome, latency_ms, error_reason=e.reason
                )
                self._metrics.record_latency(provider, capability, outcome, latency_ms)
                self._metrics.inc_error(provider, outcome)
                failures.append(ProviderAttempt(provider=provider, reason=e.reason, no_results=no_results))
                continue

            latency_ms = (self._clock() - start) * 1000
            cache_hit = bool(getattr(result, "cached", False))
            outcome = "cache_hit" if cache_hit else "success"
            self._log.log_attempt(provider, capability, attempt, outcome, latency_ms, cache_hit=cache_hit)
            self._metrics.record_latency(provider, capability, outcome, latency_ms)
            if cache_hit:
                self._metrics.inc_cache_hit(provider)
            return result

        if failures and failures[-1].no_results:
            last = failures[-1]
            raise NoResultsError(last.provider, f"no {capability} results ({last.reason})")

        logger.error(
            "All %s providers unavailable",
            capability,
            extra={"structured": {"capability": capability, "attempts": [a.provider for a in failures]}},
        )
        raise AllProvidersUnavailableError(capability, failures)
