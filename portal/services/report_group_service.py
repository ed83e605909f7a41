"""Report group administration."""

import logging
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal.core.exceptions import NotFoundError
from portal.models.hub import Report, ReportGroup, ReportingHub
from portal.models.user import User
from portal.schemas.report_group import (
    AdminReportGroupListResponse,
    AdminReportGroupResponse,
    ReportGroupCreate,
    ReportGroupUpdate,
)
from portal.utils.code_utils import code_from_name

logger = logging.getLogger(__name__)


async def _active_report_counts(db: AsyncSession) -> dict[int, int]:
    result = await db.execute(
        select(Report.report_group_id, func.count(Report.id))
        .where(Report.is_active.is_(True))
        .group_by(Report.report_group_id)
    )
    return {group_id: count for group_id, count in result.all()}


def _to_response(group: ReportGroup, report_counts: dict[int, int]) -> AdminReportGroupResponse:
    return AdminReportGroupResponse(
        report_group_id=group.id,
        hub_id=group.hub_id,
        hub_name=group.hub.name,
        group_code=group.code,
        group_name=group.name,
        description=group.description,
        sort_order=group.sort_order,
        is_active=group.is_active,
        report_count=report_counts.get(group.id, 0),
        created_at=group.created_at,
    )


class ReportGroupService:

    async def list_groups(
        self,
        db: AsyncSession,
        include_inactive: bool = False,
        hub_id: Optional[int] = None,
    ) -> AdminReportGroupListResponse:
        stmt = (
            select(ReportGroup)
            .join(ReportingHub, ReportingHub.id == ReportGroup.hub_id)
            .options(selectinload(ReportGroup.hub))
            .order_by(ReportingHub.sort_order, ReportGroup.sort_order, ReportGroup.name)
        )
        if not include_inactive:
            stmt = stmt.where(ReportGroup.is_active.is_(True))
        if hub_id is not None:
            stmt = stmt.where(ReportGroup.hub_id == hub_id)

        groups = list((await db.execute(stmt)).scalars().all())
        counts = await _active_report_counts(db)
        return AdminReportGroupListResponse(
            report_groups=[_to_response(g, counts) for g in groups],
            total_count=len(groups),
        )

    async def _get_or_404(self, db: AsyncSession, group_id: int) -> ReportGroup:
        result = await db.execute(
            select(ReportGroup)
            .options(selectinload(ReportGroup.hub))
            .where(ReportGroup.id == group_id)
            .execution_options(populate_existing=True)
        )
        group = result.scalar_one_or_none()
        if group is None:
            raise NotFoundError(f"Report group {group_id} not found")
        return group

    async def get_group(self, db: AsyncSession, group_id: int) -> AdminReportGroupResponse:
        group = await self._get_or_404(db, group_id)
        return _to_response(group, await _active_report_counts(db))

    async def _require_hub(self, db: AsyncSession, hub_id: int) -> ReportingHub:
        hub = await db.get(ReportingHub, hub_id)
        if hub is None:
            raise NotFoundError(f"Hub {hub_id} not found")
        return hub

    async def create_group(
        self, db: AsyncSession, data: ReportGroupCreate, created_by: User
    ) -> AdminReportGroupResponse:
        await self._require_hub(db, data.hub_id)

        max_sort = (
            await db.execute(
                select(func.max(ReportGroup.sort_order)).where(ReportGroup.hub_id == data.hub_id)
            )
        ).scalar()
        group = ReportGroup(
            hub_id=data.hub_id,
            code=code_from_name(data.group_name),
            name=data.group_name,
            description=data.description,
            sort_order=(max_sort or 0) + 1,
            is_active=True,
            created_by=created_by.id,
        )
        db.add(group)
        await db.commit()

        logger.info("Report group created | group=%s hub=%s by=%s", group.id, data.hub_id, created_by.id)
        return await self.get_group(db, group.id)

    async def update_group(
        self, db: AsyncSession, group_id: int, data: ReportGroupUpdate
    ) -> AdminReportGroupResponse:
        group = await self._get_or_404(db, group_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("hub_id") is not None:
            await self._require_hub(db, changes["hub_id"])
            group.hub_id = changes["hub_id"]
        if changes.get("group_name") is not None:
            group.name = changes["group_name"]
            group.code = code_from_name(changes["group_name"])
        for key in ("description", "sort_order", "is_active"):
            if changes.get(key) is not None:
                setattr(group, key, changes[key])

        await db.commit()
        logger.info("Report group updated | group=%s fields=%s", group_id, sorted(changes))
        return await self.get_group(db, group_id)

    async def delete_group(self, db: AsyncSession, group_id: int, hard_delete: bool = False) -> None:
        group = await self._get_or_404(db, group_id)
        if hard_delete:
            await db.execute(delete(ReportGroup).where(ReportGroup.id == group_id))
            db.expunge(group)
        else:
            group.is_active = False
        await db.commit()
        logger.info("Report group deleted | group=%s hard=%s", group_id, hard_delete)


report_group_service = ReportGroupService()
