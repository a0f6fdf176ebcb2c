"""Provenance helpers for provider adapters."""

from datetime import UTC, datetime

from backend.tripdesk.models.common import Provenance


def provenance_for_http(source: str, url: str, cache_hit: bool = False) -> Provenance:
    """Create provenance for HTTP-based provider results.

    Args:
        source: Source identifier (e.g., "amadeus.flights")
        url: URL of the upstream endpoint
        cache_hit: Whether result came from cache

    Returns:
        Provenance with source=provider-specific string, fetched_at=now(UTC)
    """
    return Provenance(
        source=f"provider.{source}",
        ref_id=source,
        source_url=url,
        fetched_at=datetime.now(UTC),
        cache_hit=cache_hit,
    )



def as_cache_hit(provenance: Provenance) -> Provenance:
    """Copy of stored provenance re-tagged as served from cache.

    fetched_at keeps the original upstream fetch time.
    """
    return provenance.model_copy(update={"cache_hit": True})
