"""User administration: listing, lockout and account expiry."""

import logging
import math
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal.config import settings
from portal.core.exceptions import NotFoundError, ValidationError
from portal.crud.access import live_grant
from portal.crud.user import user_crud
from portal.models.access import UserHubAccess, UserReportAccess
from portal.models.department import UserDepartment
from portal.models.user import User, UserRole
from portal.schemas.common import PaginationInfo
from portal.schemas.user_admin import (
    AdminUserListResponse,
    AdminUserResponse,
    AuditEntryListResponse,
    AuditEntryResponse,
)
from portal.services.audit_service import AuditAction, audit_service
from portal.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


async def _live_counts(db: AsyncSession, model, user_ids: list[int]) -> dict[int, int]:
    if not user_ids:
        return {}
    result = await db.execute(
        select(model.user_id, func.count(model.id))
        .where(model.user_id.in_(user_ids), live_grant(model, utc_now()))
        .group_by(model.user_id)
    )
    return dict(result.all())


class UserAdminService:

    async def _to_responses(self, db: AsyncSession, users: list[User]) -> list[AdminUserResponse]:
        ids = [u.id for u in users]
        departments = await _live_counts(db, UserDepartment, ids)
        hubs = await _live_counts(db, UserHubAccess, ids)
        reports = await _live_counts(db, UserReportAccess, ids)

        return [
            AdminUserResponse(
                user_id=u.id,
                email=u.email,
                first_name=u.first_name,
                last_name=u.last_name,
                display_name=u.display_name,
                company=u.company,
                roles=sorted(ur.role.name for ur in u.user_roles),
                is_active=u.is_active,
                is_expired=u.is_expired,
                expired_at=u.expired_at,
                expiration_reason=u.expiration_reason,
                is_locked_out=u.is_currently_locked,
                last_login_at=u.last_login_at,
                login_count=u.login_count,
                created_at=u.created_at,
                department_count=departments.get(u.id, 0),
                hub_count=hubs.get(u.id, 0),
                report_count=reports.get(u.id, 0),
            )
            for u in users
        ]

    async def list_users(
        self,
        db: AsyncSession,
        page: int = 1,
        page_size: int = settings.DEFAULT_PAGE_SIZE,
        search: Optional[str] = None,
        include_inactive: bool = False,
        include_expired: bool = False,
    ) -> AdminUserListResponse:
        """One page of users ordered by email, with grant counts."""
        page = max(page, 1)
        page_size = min(max(page_size, 1), settings.MAX_PAGE_SIZE)

        conditions = []
        if not include_inactive:
            conditions.append(User.is_active.is_(True))
        if not include_expired:
            conditions.append(User.is_expired.is_(False))
        if search:
            pattern = f"%{search.strip().lower()}%"
            conditions.append(
                or_(
                    func.lower(User.email).like(pattern),
                    func.lower(User.first_name).like(pattern),
                    func.lower(User.last_name).like(pattern),
                    func.lower(User.display_name).like(pattern),
                )
            )

        total = (await db.execute(select(func.count(User.id)).where(*conditions))).scalar() or 0
        result = await db.execute(
            select(User)
            .options(selectinload(User.user_roles).selectinload(UserRole.role))
            .where(*conditions)
            .order_by(User.email)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        users = list(result.scalars().all())

        return AdminUserListResponse(
            users=await self._to_responses(db, users),
            pagination=PaginationInfo(
                current_page=page,
                page_size=page_size,
                total_count=total,
                total_pages=math.ceil(total / page_size) if total else 0,
            ),
        )

    async def _load(self, db: AsyncSession, user_id: int) -> User:
        result = await db.execute(
            select(User)
            .options(selectinload(User.user_roles).selectinload(UserRole.role))
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def get_user(self, db: AsyncSession, user_id: int) -> AdminUserResponse:
        user = await self._load(db, user_id)
        return (await self._to_responses(db, [user]))[0]

    # ---------------------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------------------

    async def unlock_user(
        self, db: AsyncSession, user_id: int, actor: User, ip_address: Optional[str] = None
    ) -> None:
        user = await self._load(db, user_id)
        user.is_locked_out = False
        user.lockout_end = None
        user.failed_login_attempts = 0
        audit_service.log(
            db, AuditAction.USER_UNLOCKED, entity_type="User", entity_id=user_id,
            actor=actor, ip_address=ip_address,
        )
        await db.commit()
        logger.info("User unlocked | user=%s by=%s", user_id, actor.id)

    async def expire_user(
        self,
        db: AsyncSession,
        user_id: int,
        actor: User,
        reason: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        """Expire an account; expired users can no longer sign in or call the API."""
        if user_id == actor.id:
            raise ValidationError("You cannot expire your own account")

        user = await self._load(db, user_id)
        user.is_expired = True
        user.expired_at = utc_now()
        user.expiration_reason = reason
        user.expired_by = actor.id
        audit_service.log(
            db, AuditAction.USER_EXPIRED, entity_type="User", entity_id=user_id,
            actor=actor, new_values={"reason": reason}, ip_address=ip_address,
        )
        await db.commit()
        logger.info("User expired | user=%s by=%s", user_id, actor.id)

    async def restore_user(
        self, db: AsyncSession, user_id: int, actor: User, ip_address: Optional[str] = None
    ) -> None:
        user = await self._load(db, user_id)
        old_values = {"is_expired": user.is_expired, "is_active": user.is_active}
        user.is_expired = False
        user.expired_at = None
        user.expiration_reason = None
        user.expired_by = None
        user.is_active = True
        audit_service.log(
            db, AuditAction.USER_RESTORED, entity_type="User", entity_id=user_id,
            actor=actor, old_values=old_values, ip_address=ip_address,
        )
        await db.commit()
        logger.info("User restored | user=%s by=%s", user_id, actor.id)

    async def list_audit(self, db: AsyncSession, user_id: int, limit: int = 50) -> AuditEntryListResponse:
        if await user_crud.get_by_id(db, user_id) is None:
            raise NotFoundError(f"User {user_id} not found")
        entries = await audit_service.list_for_entity(db, "User", user_id, limit=limit)
        return AuditEntryListResponse(
            entries=[
                AuditEntryResponse(
                    audit_id=e.id,
                    action=e.action,
                    entity_type=e.entity_type,
                    entity_id=e.entity_id,
                    user_id=e.user_id,
                    user_email=e.user_email,
                    old_values=e.old_values,
                    new_values=e.new_values,
                    ip_address=e.ip_address,
                    created_at=e.created_at,
                )
                for e in entries
            ]
        )


user_admin_service = UserAdminService()
