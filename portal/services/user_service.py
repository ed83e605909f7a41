"""Self-service profile and preferences of the signed-in user."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from portal.crud.profile import profile_crud
from portal.models.profile import UserPreferences, UserProfile
from portal.models.user import User
from portal.schemas.user_profile import (
    PreferencesResponse,
    UpdateAvatarResponse,
    UpdatePreferencesRequest,
    UpdatePreferencesResponse,
    UserProfileResponse,
)

logger = logging.getLogger(__name__)


class UserService:

    async def get_profile(self, db: AsyncSession, user: User) -> UserProfileResponse:
        profile = await profile_crud.get_profile(db, user.id)
        return UserProfileResponse(avatar_id=profile.avatar_id if profile else None)

    async def update_avatar(
        self, db: AsyncSession, user: User, avatar_id: str
    ) -> UpdateAvatarResponse:
        await profile_crud.upsert(db, UserProfile, user.id, {"avatar_id": avatar_id})
        await db.commit()
        logger.info("Avatar updated | user=%s avatar=%s", user.id, avatar_id)
        return UpdateAvatarResponse(avatar_id=avatar_id)

    async def get_preferences(self, db: AsyncSession, user: User) -> PreferencesResponse:
        """Stored preferences, or the defaults when the user never saved any."""
        preferences = await profile_crud.get_preferences(db, user.id)
        if preferences is None:
            return PreferencesResponse()
        return PreferencesResponse(
            theme_id=preferences.theme_id, table_row_size=preferences.table_row_size
        )

    async def update_preferences(
        self, db: AsyncSession, user: User, data: UpdatePreferencesRequest
    ) -> UpdatePreferencesResponse:
        values = data.model_dump(exclude_none=True)
        await profile_crud.upsert(db, UserPreferences, user.id, values)
        await db.commit()
        logger.info("Preferences updated | user=%s fields=%s", user.id, sorted(values))
        return UpdatePreferencesResponse(preferences=await self.get_preferences(db, user))


user_service = UserService()
