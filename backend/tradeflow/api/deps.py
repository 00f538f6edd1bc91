"""API dependencies for principal resolution and database access."""

from typing import Optional

from fastapi import Depends, HTTPException, status, Header

from tradeflow.database import get_db, get_session_factory
from tradeflow.core.security import Principal, parse_principal, BUYER, VENDOR

__all__ = [
    "get_db",
    "get_session_factory",
    "get_current_principal",
    "require_role",
    "require_buyer",
    "require_vendor",
]


async def get_current_principal(
    x_user_id: Optional[str] = Header(None, description="Authenticated user id (set by the auth gateway)"),
    x_user_role: Optional[str] = Header(None, description="buyer, vendor or admin"),
) -> Principal:
    """
    Dependency that resolves the caller from gateway-provided identity headers.

    Raises:
        HTTPException: 401 if the headers are missing or the role is unknown
    """
    principal = parse_principal(x_user_id, x_user_role)

    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "code": "UNAUTHENTICATED",
                "message": "X-User-Id and X-User-Role headers are required"
            }
        )

    return principal


def require_role(*roles: str):
    """Dependency factory restricting an endpoint to the given roles."""

    async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "FORBIDDEN",
                    "message": f"This action requires role: {' or '.join(roles)}"
                }
            )
        return principal

    return dependency


require_buyer = require_role(BUYER)
require_vendor = require_role(VENDOR)
