"""Authentication endpoints: password login, token refresh, logout, profile."""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.database import get_db
from portal.dependencies import client_ip, get_current_user
from portal.models.user import User
from portal.schemas.auth import (
    CurrentUserResponse,
    LoginRequest,
    RefreshTokenRequest,
    TokenResponse,
)
from portal.schemas.common import SuccessResponse
from portal.services.auth_service import auth_service
from portal.utils.logging_utils import redact_email

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: Request,
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Login with email and password.

    Returns an access token, a refresh token and the user.
    """
    logger.info("Login attempt for email: %s", redact_email(data.email))
    return await auth_service.login(
        db,
        data.email,
        data.password,
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh_access_token(
    request: Request,
    data: RefreshTokenRequest,
    db: AsyncSession = Depends(get_db),
):
    """Rotate the refresh token and issue a new access token."""
    return await auth_service.refresh(
        db,
        data.refresh_token,
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )


@router.post("/logout", response_model=SuccessResponse)
async def logout(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Revoke every refresh token of the caller."""
    await auth_service.logout(db, current_user)
    return SuccessResponse(message="Logged out")


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await auth_service.current_user(db, current_user)
