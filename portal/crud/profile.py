"""CRUD operations for the per-user profile and preference rows."""

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.crud.access import dialect_insert
from portal.models.profile import UserPreferences, UserProfile
from portal.utils.datetime_utils import utc_now


class ProfileCRUD:

    @staticmethod
    async def get_profile(db: AsyncSession, user_id: int) -> Optional[UserProfile]:
        result = await db.execute(
            select(UserProfile)
            .where(UserProfile.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_preferences(db: AsyncSession, user_id: int) -> Optional[UserPreferences]:
        result = await db.execute(
            select(UserPreferences)
            .where(UserPreferences.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def upsert(db: AsyncSession, model, user_id: int, values: dict[str, Any]) -> None:
        """Create the user's row from *values*, or overwrite only those columns.

        Columns left out of *values* keep their stored value, or take the
        column default on insert.
        """
        now = utc_now()
        insert = dialect_insert(db)
        stmt = insert(model).values(user_id=user_id, created_at=now, updated_at=now, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={**values, "updated_at": now},
        )
        await db.execute(stmt)


profile_crud = ProfileCRUD()
