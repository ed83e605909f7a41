"""FastAPI dependencies for authentication and authorization."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.database import get_db
from portal.core.exceptions import ForbiddenError, UnauthorizedError
from portal.crud.user import user_crud
from portal.models.user import User
from portal.services.identity.chain import get_chain
from portal.services.permission_service import permission_service

# Missing credentials are reported through UnauthorizedError, not HTTPBearer's own 403
security = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the calling user from the bearer token.

    The token goes through the identity provider chain (built-in HS256 or
    Entra RS256). Inactive, expired and currently locked-out accounts are
    rejected.

    Raises:
        UnauthorizedError: missing or invalid token, or an unusable account
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Authentication required")

    identity = await get_chain().authenticate(credentials.credentials, db)

    user = await user_crud.get_by_id(db, identity.user_id)
    if user is None:
        raise UnauthorizedError("Could not validate credentials")
    if not user.is_active:
        raise UnauthorizedError("User account is inactive")
    if user.is_expired:
        raise UnauthorizedError("User account has expired")
    if user.is_currently_locked:
        raise UnauthorizedError("User account is locked")

    request.state.user_id = user.id
    return user


async def get_current_admin_user(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get current user if they hold the admin role.

    Raises:
        ForbiddenError: the user is not an admin
    """
    if not await permission_service.is_admin(db, current_user.id):
        raise ForbiddenError("Admin access required")
    return current_user


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
