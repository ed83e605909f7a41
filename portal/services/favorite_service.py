"""Per-user favorite reports."""

import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal.core.exceptions import ForbiddenError, NotFoundError
from portal.crud.access import access_grant_crud
from portal.models.favorite import UserFavorite
from portal.models.hub import Report, ReportGroup
from portal.models.user import User
from portal.schemas.report import FavoriteListResponse, FavoriteResponse
from portal.services.permission_service import permission_service

logger = logging.getLogger(__name__)


class FavoriteService:

    async def list_favorites(self, db: AsyncSession, user: User) -> FavoriteListResponse:
        """Favorites the user can still open, by ``sort_order``.

        Favorites whose report has since become inaccessible stay stored but
        are not listed.
        """
        result = await db.execute(
            select(UserFavorite)
            .options(
                selectinload(UserFavorite.report)
                .selectinload(Report.report_group)
                .selectinload(ReportGroup.hub)
            )
            .where(UserFavorite.user_id == user.id)
            .order_by(UserFavorite.sort_order, UserFavorite.id)
        )
        favorites = list(result.scalars().all())
        if not favorites:
            return FavoriteListResponse()

        visible = {
            report.id
            for report, _level in await permission_service.accessible_reports(db, user.id)
        }
        return FavoriteListResponse(
            favorites=[
                FavoriteResponse(
                    user_favorite_id=fav.id,
                    report_id=fav.report_id,
                    report_code=fav.report.code,
                    report_name=fav.report.name,
                    description=fav.report.description,
                    report_type=fav.report.report_type,
                    hub_id=fav.report.report_group.hub_id,
                    hub_name=fav.report.report_group.hub.name,
                    sort_order=fav.sort_order,
                )
                for fav in favorites
                if fav.report_id in visible
            ]
        )

    async def add_favorite(self, db: AsyncSession, user: User, report_id: int) -> bool:
        """Append *report_id* to the user's favorites.

        Returns False when it was already a favorite.
        """
        if await db.get(Report, report_id) is None:
            raise NotFoundError(f"Report {report_id} not found")
        if not await permission_service.can_access_report(db, user.id, report_id):
            raise ForbiddenError("You do not have access to this report")

        max_sort = (
            await db.execute(
                select(func.max(UserFavorite.sort_order)).where(UserFavorite.user_id == user.id)
            )
        ).scalar()
        inserted = await access_grant_crud.insert_if_absent(
            db,
            UserFavorite,
            {"user_id": user.id, "report_id": report_id, "sort_order": (max_sort or 0) + 1},
            key=["user_id", "report_id"],
        )
        await db.commit()
        logger.debug(
            "Favorite add | user=%s report=%s inserted=%s", user.id, report_id, bool(inserted)
        )
        return bool(inserted)

    async def remove_favorite(self, db: AsyncSession, user: User, report_id: int) -> bool:
        result = await db.execute(
            delete(UserFavorite).where(
                UserFavorite.user_id == user.id, UserFavorite.report_id == report_id
            )
        )
        await db.commit()
        return bool(result.rowcount)

    async def reorder_favorites(self, db: AsyncSession, user: User, report_ids: list[int]) -> None:
        for position, report_id in enumerate(report_ids, start=1):
            await db.execute(
                update(UserFavorite)
                .where(UserFavorite.user_id == user.id, UserFavorite.report_id == report_id)
                .values(sort_order=position)
            )
        await db.commit()


favorite_service = FavoriteService()
