"""Hub browsing and hub administration."""

import logging
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.exceptions import NotFoundError, ValidationError
from portal.models.hub import Report, ReportGroup, ReportingHub
from portal.models.user import User
from portal.schemas.hub import (
    AdminHubListResponse,
    AdminHubResponse,
    HubCreate,
    HubDetailResponse,
    HubListResponse,
    HubReportResponse,
    HubReportsResponse,
    HubResponse,
    HubUpdate,
)
from portal.services.permission_service import permission_service
from portal.utils.code_utils import code_from_name, unique_code

logger = logging.getLogger(__name__)


async def _report_counts(db: AsyncSession) -> dict[int, int]:
    """Active reports in active groups, per hub."""
    result = await db.execute(
        select(ReportGroup.hub_id, func.count(Report.id))
        .join(Report, Report.report_group_id == ReportGroup.id)
        .where(ReportGroup.is_active.is_(True), Report.is_active.is_(True))
        .group_by(ReportGroup.hub_id)
    )
    return {hub_id: count for hub_id, count in result.all()}


async def _group_counts(db: AsyncSession) -> dict[int, int]:
    result = await db.execute(
        select(ReportGroup.hub_id, func.count(ReportGroup.id))
        .where(ReportGroup.is_active.is_(True))
        .group_by(ReportGroup.hub_id)
    )
    return {hub_id: count for hub_id, count in result.all()}


def _to_admin_response(
    hub: ReportingHub, group_counts: dict[int, int], report_counts: dict[int, int]
) -> AdminHubResponse:
    return AdminHubResponse(
        hub_id=hub.id,
        hub_code=hub.code,
        hub_name=hub.name,
        description=hub.description,
        icon_name=hub.icon_name,
        color_class=hub.color_class,
        background_image=hub.background_image,
        sort_order=hub.sort_order,
        is_active=hub.is_active,
        report_group_count=group_counts.get(hub.id, 0),
        report_count=report_counts.get(hub.id, 0),
        created_at=hub.created_at,
    )


class HubService:
    """Hub listing for portal users plus admin CRUD."""

    # ---------------------------------------------------------------------------
    # Browsing
    # ---------------------------------------------------------------------------

    async def list_accessible_hubs(self, db: AsyncSession, user: User) -> HubListResponse:
        hubs = await permission_service.resolve_accessible_hubs(db, user.id)
        counts = await _report_counts(db) if hubs else {}
        return HubListResponse(
            hubs=[
                HubResponse(
                    hub_id=hub.id,
                    hub_code=hub.code,
                    hub_name=hub.name,
                    description=hub.description,
                    icon_name=hub.icon_name,
                    color_class=hub.color_class,
                    background_image=hub.background_image,
                    report_count=counts.get(hub.id, 0),
                )
                for hub in hubs
            ]
        )

    async def _accessible_hub(self, db: AsyncSession, user: User, hub_id: int) -> ReportingHub:
        # Hubs the caller cannot see are reported as missing
        if not await permission_service.can_access_hub(db, user.id, hub_id):
            raise NotFoundError(f"Hub {hub_id} not found")
        return await db.get(ReportingHub, hub_id)

    async def _hub_reports(
        self, db: AsyncSession, user: User, hub_id: int
    ) -> list[HubReportResponse]:
        visible = await permission_service.accessible_reports(db, user.id, hub_id=hub_id)
        groups = {
            g.id: g
            for g in (
                await db.execute(select(ReportGroup).where(ReportGroup.hub_id == hub_id))
            ).scalars()
        }
        return [
            HubReportResponse(
                report_id=report.id,
                report_code=report.code,
                report_name=report.name,
                description=report.description,
                report_type=report.report_type,
                group_id=report.report_group_id,
                group_name=groups[report.report_group_id].name,
                access_level=level,
            )
            for report, level in visible
        ]

    async def get_hub_detail(self, db: AsyncSession, user: User, hub_id: int) -> HubDetailResponse:
        hub = await self._accessible_hub(db, user, hub_id)
        return HubDetailResponse(
            hub_id=hub.id,
            hub_code=hub.code,
            hub_name=hub.name,
            description=hub.description,
            icon_name=hub.icon_name,
            color_class=hub.color_class,
            background_image=hub.background_image,
            reports=await self._hub_reports(db, user, hub_id),
        )

    async def get_hub_reports(self, db: AsyncSession, user: User, hub_id: int) -> HubReportsResponse:
        await self._accessible_hub(db, user, hub_id)
        return HubReportsResponse(hub_id=hub_id, reports=await self._hub_reports(db, user, hub_id))

    # ---------------------------------------------------------------------------
    # Administration
    # ---------------------------------------------------------------------------

    async def list_hubs(self, db: AsyncSession, include_inactive: bool = False) -> AdminHubListResponse:
        stmt = select(ReportingHub).order_by(ReportingHub.sort_order, ReportingHub.name)
        if not include_inactive:
            stmt = stmt.where(ReportingHub.is_active.is_(True))
        hubs = list((await db.execute(stmt)).scalars().all())

        group_counts = await _group_counts(db)
        report_counts = await _report_counts(db)
        return AdminHubListResponse(
            hubs=[_to_admin_response(h, group_counts, report_counts) for h in hubs],
            total_count=len(hubs),
        )

    async def _get_or_404(self, db: AsyncSession, hub_id: int) -> ReportingHub:
        hub = await db.get(ReportingHub, hub_id)
        if hub is None:
            raise NotFoundError(f"Hub {hub_id} not found")
        return hub

    async def get_hub(self, db: AsyncSession, hub_id: int) -> AdminHubResponse:
        hub = await self._get_or_404(db, hub_id)
        return _to_admin_response(hub, await _group_counts(db), await _report_counts(db))

    async def create_hub(self, db: AsyncSession, data: HubCreate, created_by: User) -> AdminHubResponse:
        """Create a hub at the end of the sort order.

        An explicit ``hub_code`` must be free; a derived one is de-duplicated.
        """
        if data.hub_code:
            code = code_from_name(data.hub_code)
            taken = await db.execute(select(ReportingHub.id).where(ReportingHub.code == code))
            if taken.scalar_one_or_none() is not None:
                raise ValidationError(f"Hub code '{code}' already exists")
        else:
            code = await unique_code(db, ReportingHub.code, code_from_name(data.hub_name))

        max_sort = (await db.execute(select(func.max(ReportingHub.sort_order)))).scalar()
        hub = ReportingHub(
            code=code,
            name=data.hub_name,
            description=data.description,
            icon_name=data.icon_name,
            color_class=data.color_class,
            background_image=data.background_image,
            sort_order=(max_sort or 0) + 1,
            is_active=True,
            created_by=created_by.id,
        )
        db.add(hub)
        await db.commit()
        await db.refresh(hub)

        logger.info("Hub created | hub=%s code=%s by=%s", hub.id, hub.code, created_by.id)
        return _to_admin_response(hub, {}, {})

    async def update_hub(
        self, db: AsyncSession, hub_id: int, data: HubUpdate, updated_by: User
    ) -> AdminHubResponse:
        hub = await self._get_or_404(db, hub_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("hub_code"):
            code = code_from_name(changes["hub_code"])
            clash = await db.execute(
                select(ReportingHub.id).where(ReportingHub.code == code, ReportingHub.id != hub_id)
            )
            if clash.scalar_one_or_none() is not None:
                raise ValidationError(f"Hub code '{code}' already exists")
            hub.code = code

        field_map = {
            "hub_name": "name",
            "description": "description",
            "icon_name": "icon_name",
            "color_class": "color_class",
            "background_image": "background_image",
            "sort_order": "sort_order",
            "is_active": "is_active",
        }
        for key, attr in field_map.items():
            if key in changes and changes[key] is not None:
                setattr(hub, attr, changes[key])
        hub.updated_by = updated_by.id

        await db.commit()
        await db.refresh(hub)
        logger.info("Hub updated | hub=%s fields=%s by=%s", hub_id, sorted(changes), updated_by.id)
        return await self.get_hub(db, hub_id)

    async def delete_hub(self, db: AsyncSession, hub_id: int, hard_delete: bool = False) -> None:
        """Soft delete by default; hard delete cascades to groups, reports and grants."""
        hub = await self._get_or_404(db, hub_id)
        if hard_delete:
            await db.execute(delete(ReportingHub).where(ReportingHub.id == hub_id))
            db.expunge(hub)
        else:
            hub.is_active = False
        await db.commit()
        logger.info("Hub deleted | hub=%s hard=%s", hub_id, hard_delete)

    async def reorder_hubs(self, db: AsyncSession, hub_ids: list[int]) -> None:
        """Set ``sort_order`` to each id's 1-based position in *hub_ids*."""
        for position, hub_id in enumerate(hub_ids, start=1):
            await db.execute(
                update(ReportingHub).where(ReportingHub.id == hub_id).values(sort_order=position)
            )
        await db.commit()


hub_service = HubService()
