"""Self-service profile (avatar) and UI preference schemas."""

from typing import Optional

from pydantic import Field

from portal.models.profile import DEFAULT_TABLE_ROW_SIZE, DEFAULT_THEME_ID
from portal.schemas.common import CamelModel


class UserProfileResponse(CamelModel):
    avatar_id: Optional[str] = None


class UpdateAvatarRequest(CamelModel):
    avatar_id: str = Field(..., min_length=1, max_length=50)


class UpdateAvatarResponse(CamelModel):
    success: bool = True
    avatar_id: str


class PreferencesResponse(CamelModel):
    theme_id: str = DEFAULT_THEME_ID
    table_row_size: str = DEFAULT_TABLE_ROW_SIZE


class UpdatePreferencesRequest(CamelModel):
    """Fields left out keep their current value."""

    theme_id: Optional[str] = Field(None, min_length=1, max_length=50)
    table_row_size: Optional[str] = Field(None, min_length=1, max_length=10)


class UpdatePreferencesResponse(CamelModel):
    success: bool = True
    preferences: PreferencesResponse
