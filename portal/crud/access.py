"""CRUD operations for access grants (hub, report, department membership)."""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal.models.access import UserHubAccess, UserReportAccess
from portal.models.department import UserDepartment
from portal.models.hub import Report, ReportGroup


def live_grant(model, now: datetime):
    """Condition selecting grant rows that have not expired at *now*.

    The bound is exclusive: a grant expiring exactly at *now* is expired.
    """
    return or_(model.expires_at.is_(None), model.expires_at > now)


def dialect_insert(db: AsyncSession):
    """INSERT construct with ON CONFLICT support for the bound backend."""
    if db.bind is not None and db.bind.dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


class AccessGrantCRUD:
    """Lookup and delete helpers for the three grant tables."""

    @staticmethod
    async def find_hub_grant(
        db: AsyncSession, user_id: int, hub_id: int
    ) -> Optional[UserHubAccess]:
        """Return the (user, hub) grant regardless of expiry."""
        result = await db.execute(
            select(UserHubAccess).where(
                UserHubAccess.user_id == user_id,
                UserHubAccess.hub_id == hub_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def find_report_grant(
        db: AsyncSession, user_id: int, report_id: int
    ) -> Optional[UserReportAccess]:
        result = await db.execute(
            select(UserReportAccess).where(
                UserReportAccess.user_id == user_id,
                UserReportAccess.report_id == report_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def delete_hub_grant(db: AsyncSession, user_id: int, hub_id: int) -> int:
        """Delete the (user, hub) grant. Returns the number of rows removed."""
        result = await db.execute(
            delete(UserHubAccess).where(
                UserHubAccess.user_id == user_id,
                UserHubAccess.hub_id == hub_id,
            )
        )
        return result.rowcount or 0

    @staticmethod
    async def delete_report_grant(db: AsyncSession, user_id: int, report_id: int) -> int:
        result = await db.execute(
            delete(UserReportAccess).where(
                UserReportAccess.user_id == user_id,
                UserReportAccess.report_id == report_id,
            )
        )
        return result.rowcount or 0

    @staticmethod
    async def delete_department_membership(
        db: AsyncSession, user_id: int, department_id: int
    ) -> int:
        result = await db.execute(
            delete(UserDepartment).where(
                UserDepartment.user_id == user_id,
                UserDepartment.department_id == department_id,
            )
        )
        return result.rowcount or 0

    @staticmethod
    async def upsert_grant(
        db: AsyncSession,
        model,
        key: dict[str, int],
        granted_by: Optional[int],
        expires_at: Optional[datetime],
        now: datetime,
    ) -> None:
        """Insert a grant or refresh the existing one for the same key.

        Uses ``INSERT .. ON CONFLICT DO UPDATE`` against the (user, target)
        unique constraint, so two concurrent grants for one pair leave a
        single row.
        """
        insert = dialect_insert(db)
        stmt = insert(model).values(
            **key, granted_by=granted_by, granted_at=now, expires_at=expires_at
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=list(key),
            set_={
                "granted_by": stmt.excluded.granted_by,
                "granted_at": stmt.excluded.granted_at,
                "expires_at": stmt.excluded.expires_at,
            },
        )
        await db.execute(stmt)

    @staticmethod
    async def insert_if_absent(db: AsyncSession, model, values: dict, key: list[str]) -> int:
        """Insert *values* unless a row with the same *key* exists.

        Returns the number of rows inserted (0 or 1).
        """
        insert = dialect_insert(db)
        stmt = insert(model).values(**values).on_conflict_do_nothing(index_elements=key)
        result = await db.execute(stmt)
        return result.rowcount or 0

    @staticmethod
    async def insert_or_revive(
        db: AsyncSession, model, values: dict, key: list[str], now: datetime
    ) -> int:
        """Insert *values*, or take over an existing row that expired by *now*.

        A live row for the same *key* is left untouched. A revived row gets
        the new grantor and grant time and loses its expiry. Returns the
        number of rows written (0 or 1).
        """
        insert = dialect_insert(db)
        stmt = insert(model).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=key,
            set_={
                "granted_by": stmt.excluded.granted_by,
                "granted_at": stmt.excluded.granted_at,
                "expires_at": None,
            },
            where=and_(model.expires_at.is_not(None), model.expires_at <= now),
        )
        result = await db.execute(stmt)
        return result.rowcount or 0

    @staticmethod
    async def list_live_hub_grants(
        db: AsyncSession, user_id: int, now: datetime
    ) -> list[UserHubAccess]:
        result = await db.execute(
            select(UserHubAccess)
            .options(selectinload(UserHubAccess.hub), selectinload(UserHubAccess.granted_by_user))
            .where(UserHubAccess.user_id == user_id, live_grant(UserHubAccess, now))
            .order_by(UserHubAccess.granted_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_live_report_grants(
        db: AsyncSession, user_id: int, now: datetime
    ) -> list[UserReportAccess]:
        result = await db.execute(
            select(UserReportAccess)
            .options(
                selectinload(UserReportAccess.report)
                .selectinload(Report.report_group)
                .selectinload(ReportGroup.hub),
                selectinload(UserReportAccess.granted_by_user),
            )
            .where(UserReportAccess.user_id == user_id, live_grant(UserReportAccess, now))
            .order_by(UserReportAccess.granted_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_live_memberships(
        db: AsyncSession, user_id: int, now: datetime
    ) -> list[UserDepartment]:
        result = await db.execute(
            select(UserDepartment)
            .options(
                selectinload(UserDepartment.department),
                selectinload(UserDepartment.granted_by_user),
            )
            .where(UserDepartment.user_id == user_id, live_grant(UserDepartment, now))
            .order_by(UserDepartment.granted_at)
        )
        return list(result.scalars().all())


access_grant_crud = AccessGrantCRUD()
