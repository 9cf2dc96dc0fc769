"""
Authentication dependencies for FastAPI routes.

Credentials are validated upstream; the identity layer forwards the
authenticated participant id and role in the X-User-Id / X-User-Role
headers. These dependencies only turn that into a Principal and check
role capabilities before an engine operation is invoked.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from smashqueue.models.schemas import Principal

ORGANIZER_ROLES = {"organizer", "admin"}


async def get_current_principal_optional(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Optional[Principal]:
    """
    Principal of the caller, or None for anonymous requests.

    Raises:
        HTTPException: If the forwarded user id is malformed
    """
    if x_user_id is None:
        return None
    try:
        participant_id = int(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authenticated user id",
        )
    return Principal(participant_id=participant_id, role=(x_user_role or "player").lower())


async def get_current_principal(
    principal: Optional[Principal] = Depends(get_current_principal_optional),
) -> Principal:
    """Require an authenticated caller."""
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return principal


async def require_organizer(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Require an organizer or admin."""
    if principal.role not in ORGANIZER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organizer access required",
        )
    return principal
