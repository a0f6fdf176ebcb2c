"""Shared plumbing for provider adapters: HTTP calls, error mapping, caching."""

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

import httpx

from backend.tripdesk.adapters.provenance import as_cache_hit
from backend.tripdesk.cache.query_cache import QueryCache, hash_params
from backend.tripdesk.errors import ProviderUnavailableError
from backend.tripdesk.models.providers import FlightQuote, HotelResult, SearchResult, cached_payload

logger = logging.getLogger(__name__)

R = TypeVar("R", FlightQuote, HotelResult, SearchResult)


async def send_json(
    provider: str,
    client: httpx.AsyncClient | None,
    method: str,
    url: str,
    timeout: float = 10.0,
    **kwargs: Any,
) -> dict[str, Any]:
    """Make one upstream call and decode its JSON body.

    Args:
        provider: Provider name for error reporting
        client: Optional httpx client (for testing with mocks)
        method: HTTP method
        url: Absolute URL
        timeout: Timeout used when no client is supplied
        **kwargs: Passed through to httpx (params, json, data, headers)

    Returns:
        Decoded JSON object

    Raises:
        ProviderUnavailableError: On network errors, non-2xx status, or a body
            that is not a JSON object
    """
    close_client = False
    if client is None:
        client = httpx.AsyncClient(timeout=timeout)
        close_client = True

    try:
        response = await client.request(method, url, **kwargs)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        raise ProviderUnavailableError(provider, f"HTTP {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise ProviderUnavailableError(provider, type(e).__name__) from e
    except ValueError as e:
        raise ProviderUnavailableError(provider, "invalid JSON body") from e
    finally:
        if close_client:
            await client.aclose()

    if not isinstance(data, dict):
        raise ProviderUnavailableError(provider, f"unexpected JSON {type(data).__name__}")
    return data


def price_band(prices: Sequence[float]) -> tuple[float, float, float]:
    """Low, median and high of a non-empty price list.

    The median is the element at index n // 2 of the sorted list.
    """
    ordered = sorted(prices)
    return ordered[0], ordered[len(ordered) // 2], ordered[-1]


class ProviderAdapter:
    """Base class for adapters that normalize one upstream API.

    Subclasses set `name` (also the cache namespace) and call `_cached`
    from their capability method.
    """

    name: str = "provider"

    def __init__(
        self,
        cache: QueryCache,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._cache = cache
        self._client = client
        self._timeout = timeout

    async def _send(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        return await send_json(self.name, self._client, method, url, self._timeout, **kwargs)

    def _malformed(self, error: Exception) -> ProviderUnavailableError:
        logger.warning("Malformed %s response: %r", self.name, error)
        return ProviderUnavailableError(self.name, "malformed response")

    async def _cached(
        self,
        capability: str,
        criteria: dict[str, Any],
        ttl_seconds: int,
        model: type[R],
        fetch: Callable[[], Awaitable[R]],
    ) -> R:
        """Serve from cache or fetch, normalize and store.

        Failed fetches raise before anything is written.
        """
        key_params = {"provider": self.name, "capability": capability, **criteria}
        query_hash = hash_params(key_params)

        hit = await self._cache.get(self.name, query_hash)
        if hit is not None:
            result = model.model_validate(hit.response)
            return result.model_copy(
                update={
                    "cached": True,
                    "cache_age_seconds": hit.age_seconds,
                    "provenance": as_cache_hit(result.provenance),
                }
            )

        result = await fetch()
        await self._cache.set(self.name, query_hash, key_params, cached_payload(result), ttl_seconds)
        return result
