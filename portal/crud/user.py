"""CRUD operations for users, roles and refresh tokens."""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.user import ROLE_SOURCE_MANUAL, RefreshToken, Role, User, UserRole
from portal.utils.datetime_utils import utc_now


class UserCRUD:
    """CRUD operations for User model."""

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Optional[User]:
        """Get user by email (case-insensitive)."""
        result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
        """Get user by ID."""
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_entra_object_id(db: AsyncSession, object_id: str) -> Optional[User]:
        """Get user by Entra object id (``oid`` claim)."""
        result = await db.execute(select(User).where(User.entra_object_id == object_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def record_login(db: AsyncSession, user: User) -> None:
        """Reset lockout counters and bump login statistics."""
        user.failed_login_attempts = 0
        user.is_locked_out = False
        user.lockout_end = None
        user.last_login_at = utc_now()
        user.login_count = (user.login_count or 0) + 1
        await db.commit()


class RoleCRUD:
    """CRUD operations for roles and role membership."""

    @staticmethod
    async def get_by_name(db: AsyncSession, name: str) -> Optional[Role]:
        """Get role by name (case-insensitive)."""
        result = await db.execute(select(Role).where(func.lower(Role.name) == name.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_role_names(db: AsyncSession, user_id: int) -> list[str]:
        result = await db.execute(
            select(Role.name)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(UserRole.user_id == user_id)
            .order_by(Role.name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def find_membership(db: AsyncSession, user_id: int, role_id: int) -> Optional[UserRole]:
        result = await db.execute(
            select(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def add_membership(
        db: AsyncSession,
        user_id: int,
        role_id: int,
        granted_by: Optional[int],
        source: str = ROLE_SOURCE_MANUAL,
    ) -> UserRole:
        membership = UserRole(
            user_id=user_id,
            role_id=role_id,
            granted_by=granted_by,
            granted_at=utc_now(),
            source=source,
        )
        db.add(membership)
        return membership


class RefreshTokenCRUD:
    """CRUD operations for RefreshToken model."""

    @staticmethod
    async def create(
        db: AsyncSession,
        user_id: int,
        token_hash: str,
        expires_at: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> RefreshToken:
        """Create a new refresh token."""
        token = RefreshToken(
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(token)
        await db.commit()
        await db.refresh(token)
        return token

    @staticmethod
    async def get_by_token_hash(db: AsyncSession, token_hash: str) -> Optional[RefreshToken]:
        """Get refresh token by hash."""
        result = await db.execute(select(RefreshToken).where(RefreshToken.token_hash == token_hash))
        return result.scalar_one_or_none()

    @staticmethod
    async def revoke(db: AsyncSession, token_hash: str) -> None:
        """Revoke a refresh token."""
        result = await db.execute(select(RefreshToken).where(RefreshToken.token_hash == token_hash))
        token = result.scalar_one_or_none()
        if token:
            token.revoked_at = utc_now()
            await db.commit()

    @staticmethod
    async def revoke_all_for_user(db: AsyncSession, user_id: int) -> int:
        """Revoke every outstanding refresh token of a user."""
        result = await db.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=utc_now())
        )
        await db.commit()
        return result.rowcount or 0


# Create singleton instances
user_crud = UserCRUD()
role_crud = RoleCRUD()
refresh_token_crud = RefreshTokenCRUD()
