"""Prometheus metrics for provider calls, city resolution and handoffs."""

from typing import Protocol

from prometheus_client import Counter, Histogram

provider_latency_ms = Histogram(
    "provider_latency_ms",
    "Provider call latency in milliseconds",
    ["provider", "capability", "outcome"],
    buckets=[10, 50, 100, 200, 500, 1000, 2000, 4000, 8000],
)

provider_errors_total = Counter(
    "provider_errors_total",
    "Total provider call failures",
    ["provider", "reason"],
)

provider_cache_hits_total = Counter(
    "provider_cache_hits_total",
    "Total provider cache hits",
    ["provider"],
)

city_resolutions_total = Counter(
    "city_resolutions_total",
    "City resolutions by winning strategy",
    ["method"],
)

handoffs_cleaned_total = Counter(
    "handoffs_cleaned_total",
    "Pending handoffs cancelled by expiry cleanup",
)


class ProviderMetrics(Protocol):
    """Metrics sink used by the fallback orchestrator and resolver."""

    def record_latency(self, provider: str, capability: str, outcome: str, latency_ms: float) -> None:
        ...

    def inc_error(self, provider: str, reason: str) -> None:
        ...

    def inc_cache_hit(self, provider: str) -> None:
        ...

    def inc_resolution(self, method: str) -> None:
        ...


class NullProviderMetrics:
    """Discards everything; default for services built without metrics."""

    def record_latency(self, provider: str, capability: str, outcome: str, latency_ms: float) -> None:
        pass

    def inc_error(self, provider: str, reason: str) -> None:
        pass

    def inc_cache_hit(self, provider: str) -> None:
        pass

    def inc_resolution(self, method: str) -> None:
        pass


class PrometheusProviderMetrics:
    """Prometheus-based provider metrics implementation."""

    def record_latency(self, provider: str, capability: str, outcome: str, latency_ms: float) -> None:
        """Record provider call latency."""
        provider_latency_ms.labels(provider=provider, capability=capability, outcome=outcome).observe(
            latency_ms
        )

    def inc_error(self, provider: str, reason: str) -> None:
        """Increment error counter."""
        provider_errors_total.labels(provider=provider, reason=reason).inc()

    def inc_cache_hit(self, provider: str) -> None:
        """Increment cache hit counter."""
        provider_cache_hits_total.labels(provider=provider).inc()

    def inc_resolution(self, method: str) -> None:
        """Increment city resolution counter."""
        city_resolutions_total.labels(method=method).inc()
