"""Request context carrying the caller identity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    """Already-authenticated caller identity.

    Trips and handoffs are owned by user_id; agents act on handoffs by
    their own user_id.
    """

    user_id: str
