"""Exception types shared by providers and lifecycle services.

Two families:
- Provider failures (upstream unavailable, no results, whole chain down)
- Policy violations (gates, validation, expiry), rejected synchronously
"""

from dataclasses import dataclass
from typing import Any


class ProviderUnavailableError(Exception):
    """A single upstream call failed or returned nothing usable."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason


class NoResultsError(ProviderUnavailableError):
    """Upstream answered successfully but found nothing for the query."""

    pass


@dataclass(frozen=True)
class ProviderAttempt:
    """One failed attempt inside a fallback chain."""

    provider: str
    reason: str
    no_results: bool = False


class AllProvidersUnavailableError(Exception):
    """Every adapter in a capability chain failed."""

    def __init__(self, capability: str, attempts: list[ProviderAttempt]) -> None:
        providers = ", ".join(a.provider for a in attempts) or "none configured"
        super().__init__(f"All {capability} providers unavailable ({providers})")
        self.capability = capability
        self.attempts = attempts


class NotFoundError(Exception):
    """Requested trip or handoff does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class PolicyViolationError(Exception):
    """Request rejected by a lifecycle rule."""

    status_code: int = 400

    def __init__(
        self,
        reason: str,
        *,
        requires_action: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(reason)
        self.reason = reason
        self.requires_action = requires_action
        self.details = details or {}


class ResearchNotViewedError(PolicyViolationError):
    """Options requested before the research summary was acknowledged."""

    status_code = 403

    def __init__(self, trip_id: str) -> None:
        super().__init__(
            "Research must be viewed before generating options",
            requires_action="view_research",
            details={"trip_id": trip_id},
        )


class ResearchUnavailableError(PolicyViolationError):
    """Trip has no research summary to view."""

    pass


class InvalidTransitionError(PolicyViolationError):
    """Status change would move a record backwards."""

    pass


class HandoffExpiredError(PolicyViolationError):
    """Handoff is past its expiry timestamp."""

    pass


class QuoteBelowEstimateError(PolicyViolationError):
    """Agent quote is lower than the trip's total estimate."""

    pass


class HandoffNotQuotableError(PolicyViolationError):
    """Handoff is not in a status that accepts the requested change."""

    pass


@dataclass(frozen=True)
class FieldError:
    """Single validation failure on a handoff field."""

    field: str
    message: str


class HandoffValidationError(PolicyViolationError):
    """Handoff payload failed structural validation."""

    def __init__(self, errors: list[FieldError]) -> None:
        super().__init__(
            "Handoff document failed validation",
            details={"errors": [{"field": e.field, "message": e.message} for e in errors]},
        )
        self.errors = errors
