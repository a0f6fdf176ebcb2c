"""Content-addressed provider cache over the relational store.

Entries are keyed by (provider, sha256(sorted-key JSON of params)). Expiry is
enforced lazily: a read that finds an expired row deletes it and reports a
miss. There is no background sweep; purge_expired() exists for operators who
want one.
"""

import hashlib
import json
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from backend.tripdesk.db.repositories import CacheRecord, CacheRepository

logger = logging.getLogger(__name__)

# TTL classes (seconds)
TTL_FLIGHTS = 24 * 3600
TTL_HOTELS = 24 * 3600
TTL_SEARCH = 7 * 24 * 3600
TTL_CITY_MATCH = 7 * 24 * 3600
TTL_CITY_FALLBACK = 24 * 3600


def hash_params(params: Mapping[str, Any]) -> str:
    """Digest a parameter map independent of key order.

    Args:
        params: Query parameters (nested maps are sorted too)

    Returns:
        Hex-encoded SHA-256 of the sorted-key JSON serialization
    """
    canonical = json.dumps(params, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


@dataclass
class CacheHit:
    """A valid cached response."""

    response: Any
    age_seconds: int


class QueryCache:
    """TTL cache of provider responses.

    Every call performs exactly one read or one write against the store,
    except a read that detects expiry, which also issues the delete.
    """

    def __init__(
        self,
        repository: CacheRepository,
        now_fn: Callable[[], float] = time.time,
    ) -> None:
        self._repo = repository
        self._now_fn = now_fn

    def _now(self) -> int:
        return int(self._now_fn())

    async def get(self, provider: str, query_hash: str) -> CacheHit | None:
        """Return the cached response, or None if absent or expired."""
        record = await self._repo.get(provider, query_hash)
        if record is None:
            return None

        now = self._now()
        if not record.is_valid(now):
            logger.debug("Cache expired: %s/%s", provider, query_hash[:12])
            await self._repo.delete(provider, query_hash, record.created_at)
            return None

        return CacheHit(response=json.loads(record.response_json), age_seconds=record.age_seconds(now))

    async def set(
        self,
        provider: str,
        query_hash: str,
        params: Mapping[str, Any],
        response: Any,
        ttl_seconds: int,
    ) -> None:
        """Upsert a response; overwrites body, resets created_at, applies the new TTL."""
        await self._repo.upsert(
            CacheRecord(
                provider=provider,
                query_hash=query_hash,
                query_params=json.dumps(params, sort_keys=True, default=str),
                response_json=json.dumps(response),
                created_at=self._now(),
                ttl_seconds=ttl_seconds,
            )
        )

    async def purge_expired(self) -> int:
        """Delete all expired rows. Optional maintenance, never called implicitly."""
        removed = await self._repo.purge_expired(self._now())
        logger.info("Purged %d expired cache entries", removed)
        return removed
