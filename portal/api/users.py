"""Self-service endpoints: avatar and UI preferences of the caller."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.database import get_db
from portal.dependencies import get_current_user
from portal.models.user import User
from portal.schemas.user_profile import (
    PreferencesResponse,
    UpdateAvatarRequest,
    UpdateAvatarResponse,
    UpdatePreferencesRequest,
    UpdatePreferencesResponse,
    UserProfileResponse,
)
from portal.services.user_service import user_service

router = APIRouter()


@router.get("/profile", response_model=UserProfileResponse)
async def get_profile(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_profile(db, current_user)


@router.put("/profile/avatar", response_model=UpdateAvatarResponse)
async def update_avatar(
    data: UpdateAvatarRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.update_avatar(db, current_user, data.avatar_id)


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Saved preferences, or the defaults (white theme, md rows)."""
    return await user_service.get_preferences(db, current_user)


@router.put("/preferences", response_model=UpdatePreferencesResponse)
async def update_preferences(
    data: UpdatePreferencesRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.update_preferences(db, current_user, data)
