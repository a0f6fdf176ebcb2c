"""Caller identity dependency.

Authentication happens upstream; this only reads the already-validated
identity from a "Bearer <user_id>" header, or falls back to a local
development identity when no header is sent.
"""

from typing import Annotated

from fastapi import Header, HTTPException, status

from backend.tripdesk.db.context import RequestContext

DEFAULT_USER_ID = "local-user"


async def get_current_context(
    authorization: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Extract request context from authorization header.

    Args:
        authorization: Authorization header (e.g., "Bearer <user_id>")

    Returns:
        RequestContext with user_id

    Raises:
        HTTPException: If authorization is malformed
    """
    if not authorization:
        return RequestContext(user_id=DEFAULT_USER_ID)

    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = authorization[7:].strip()  # Strip "Bearer "
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Empty bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return RequestContext(user_id=user_id)
