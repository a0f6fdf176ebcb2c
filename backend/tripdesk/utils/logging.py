"""Structured logging for provider attempts and city resolution."""

import logging
from typing import Any

logger = logging.getLogger(__name__)


class StructuredProviderLogger:
    """Structured logger for provider calls inside a fallback chain."""

    def log_attempt(
        self,
        provider: str,
        capability: str,
        attempt: int,
        outcome: str,
        latency_ms: float,
        cache_hit: bool = False,
        error_reason: str | None = None,
    ) -> None:
        """Log provider attempt with structured data."""
        log_data: dict[str, Any] = {
            "provider": provider,
            "capability": capability,
            "attempt": attempt,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
            "cache_hit": cache_hit,
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Provider call: {capability}/{provider} - {outcome}"

        if outcome in ("success", "cache_hit"):
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})

    def log_resolution(
        self,
        city: str,
        country: str | None,
        city_code: str,
        method: str,
        cached: bool,
    ) -> None:
        """Log which strategy resolved a city."""
        log_data: dict[str, Any] = {
            "city": city,
            "country": country,
            "city_code": city_code,
            "method": method,
            "cached": cached,
        }

        # Fallback answers are low confidence
        level = logging.WARNING if method == "fallback" else logging.INFO
        logger.log(level, f"City resolved: {city} -> {city_code} via {method}", extra={"structured": log_data})
