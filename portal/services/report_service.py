"""Report viewing, embedding, rendering and report administration."""

import json
import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal.config import settings
from portal.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from portal.models.department import Department, ReportDepartment
from portal.models.hub import Report, ReportGroup, ReportType, ReportingHub
from portal.models.user import User
from portal.schemas.report import (
    AdminReportListResponse,
    AdminReportResponse,
    EmbedConfig,
    ReportCreate,
    ReportEmbedResponse,
    ReportParameter,
    ReportResponse,
    ReportUpdate,
)
from portal.services.audit_service import AuditAction, audit_service
from portal.services.permission_service import permission_service
from portal.services.report_relay.ssrs import RenderedReport, build_viewer_url, ssrs_relay
from portal.utils.code_utils import code_from_name, unique_code
from portal.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


def parse_parameters(raw: Optional[str]) -> list[ReportParameter]:
    """Decode the JSON ``parameters`` column.

    Malformed JSON yields no parameters; entries that are not a parameter
    object (no ``name``, wrong types) are skipped one by one.
    """
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except ValueError:
        logger.warning("Report parameters are not valid JSON: %.80s", raw)
        return []
    if not isinstance(items, list):
        return []

    parameters = []
    for item in items:
        try:
            parameters.append(ReportParameter.model_validate(item))
        except PydanticValidationError:
            logger.warning("Skipping malformed report parameter: %.80r", item)
    return parameters


def _powerbi_embed_url(report: Report) -> Optional[str]:
    if report.powerbi_embed_url:
        return report.powerbi_embed_url
    if report.powerbi_report_id:
        url = f"{settings.POWERBI_EMBED_BASE_URL}?reportId={report.powerbi_report_id}"
        if report.powerbi_workspace_id:
            url += f"&groupId={report.powerbi_workspace_id}"
        return url
    return None


def _embed_config(report: Report) -> EmbedConfig:
    if report.report_type == ReportType.SSRS.value:
        return EmbedConfig(
            server_url=report.ssrs_report_server or settings.SSRS_SERVER_URL or None,
            report_path=report.ssrs_report_path,
        )
    return EmbedConfig(
        workspace_id=report.powerbi_workspace_id,
        report_id=report.powerbi_report_id,
        embed_url=_powerbi_embed_url(report),
    )


def _to_admin_response(report: Report) -> AdminReportResponse:
    group = report.report_group
    return AdminReportResponse(
        report_id=report.id,
        report_group_id=report.report_group_id,
        report_group_name=group.name,
        hub_id=group.hub_id,
        hub_name=group.hub.name,
        report_code=report.code,
        report_name=report.name,
        description=report.description,
        report_type=report.report_type,
        powerbi_workspace_id=report.powerbi_workspace_id,
        powerbi_report_id=report.powerbi_report_id,
        powerbi_embed_url=report.powerbi_embed_url,
        ssrs_report_path=report.ssrs_report_path,
        ssrs_report_server=report.ssrs_report_server,
        parameters=report.parameters,
        sort_order=report.sort_order,
        is_active=report.is_active,
        created_at=report.created_at,
        department_ids=sorted(tag.department_id for tag in report.department_tags),
    )


def _with_tree():
    return (
        selectinload(Report.report_group).selectinload(ReportGroup.hub),
        selectinload(Report.department_tags),
    )


class ReportService:

    async def _load(self, db: AsyncSession, report_id: int) -> Optional[Report]:
        result = await db.execute(
            select(Report)
            .options(*_with_tree())
            .where(Report.id == report_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _viewable(self, db: AsyncSession, user: User, report_id: int) -> Report:
        """Load a report the caller may open.

        Raises:
            NotFoundError: report is absent or inactive.
            ForbiddenError: report exists but the caller has no access to it.
        """
        report = await self._load(db, report_id)
        if report is None or not report.is_active:
            raise NotFoundError(f"Report {report_id} not found")
        if not await permission_service.can_access_report(db, user.id, report_id):
            raise ForbiddenError("You do not have access to this report")
        return report

    # ---------------------------------------------------------------------------
    # Viewing
    # ---------------------------------------------------------------------------

    async def get_report(self, db: AsyncSession, user: User, report_id: int) -> ReportResponse:
        report = await self._viewable(db, user, report_id)
        group = report.report_group
        return ReportResponse(
            report_id=report.id,
            report_code=report.code,
            report_name=report.name,
            description=report.description,
            report_type=report.report_type,
            hub_id=group.hub_id,
            hub_name=group.hub.name,
            report_group_id=group.id,
            report_group_name=group.name,
            embed_config=_embed_config(report),
        )

    async def get_embed(self, db: AsyncSession, user: User, report_id: int) -> ReportEmbedResponse:
        """Embed information for the viewer.

        SSRS reports get a ReportViewer URL; Power BI and paginated reports
        get their embed URL.
        """
        report = await self._viewable(db, user, report_id)
        response = ReportEmbedResponse(
            report_id=report.id,
            report_type=report.report_type,
            parameters=parse_parameters(report.parameters),
        )

        if report.report_type == ReportType.SSRS.value:
            server = report.ssrs_report_server or settings.SSRS_SERVER_URL
            if server and report.ssrs_report_path:
                response.report_url = build_viewer_url(report.ssrs_report_path, server)
        else:
            response.embed_url = _powerbi_embed_url(report)

        return response

    async def render(self, db: AsyncSession, user: User, report_id: int) -> RenderedReport:
        report = await self._viewable(db, user, report_id)
        if report.report_type != ReportType.SSRS.value:
            raise ValidationError(
                f"Proxy rendering not supported for report type: {report.report_type}"
            )
        if not report.ssrs_report_path:
            raise ValidationError("Report path not configured")

        logger.info("Relaying SSRS render | report=%s user=%s", report_id, user.id)
        return await ssrs_relay.render(report.ssrs_report_path, report.ssrs_report_server)

    async def record_access(
        self,
        db: AsyncSession,
        user: User,
        report_id: int,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        await self._viewable(db, user, report_id)
        audit_service.log(
            db,
            AuditAction.REPORT_VIEW,
            entity_type="Report",
            entity_id=report_id,
            actor=user,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        await db.commit()

    # ---------------------------------------------------------------------------
    # Administration
    # ---------------------------------------------------------------------------

    async def list_reports(
        self,
        db: AsyncSession,
        include_inactive: bool = False,
        report_group_id: Optional[int] = None,
        hub_id: Optional[int] = None,
    ) -> AdminReportListResponse:
        stmt = (
            select(Report)
            .join(ReportGroup, ReportGroup.id == Report.report_group_id)
            .join(ReportingHub, ReportingHub.id == ReportGroup.hub_id)
            .options(*_with_tree())
            .order_by(
                ReportingHub.sort_order,
                ReportGroup.sort_order,
                Report.sort_order,
                Report.name,
            )
        )
        if not include_inactive:
            stmt = stmt.where(Report.is_active.is_(True))
        if report_group_id is not None:
            stmt = stmt.where(Report.report_group_id == report_group_id)
        if hub_id is not None:
            stmt = stmt.where(ReportGroup.hub_id == hub_id)

        reports = list((await db.execute(stmt)).scalars().all())
        return AdminReportListResponse(
            reports=[_to_admin_response(r) for r in reports],
            total_count=len(reports),
        )

    async def _get_or_404(self, db: AsyncSession, report_id: int) -> Report:
        report = await self._load(db, report_id)
        if report is None:
            raise NotFoundError(f"Report {report_id} not found")
        return report

    async def get_admin_report(self, db: AsyncSession, report_id: int) -> AdminReportResponse:
        return _to_admin_response(await self._get_or_404(db, report_id))

    async def _require_group(self, db: AsyncSession, group_id: int) -> ReportGroup:
        group = await db.get(ReportGroup, group_id)
        if group is None:
            raise NotFoundError(f"Report group {group_id} not found")
        return group

    async def _require_departments(self, db: AsyncSession, department_ids: list[int]) -> set[int]:
        wanted = set(department_ids)
        if not wanted:
            return wanted
        found = set(
            (await db.execute(select(Department.id).where(Department.id.in_(wanted)))).scalars().all()
        )
        missing = sorted(wanted - found)
        if missing:
            raise ValidationError(f"Unknown department ids: {missing}")
        return wanted

    async def create_report(
        self, db: AsyncSession, data: ReportCreate, created_by: User
    ) -> AdminReportResponse:
        await self._require_group(db, data.report_group_id)
        department_ids = await self._require_departments(db, data.department_ids or [])

        code = await unique_code(db, Report.code, code_from_name(data.report_name))
        max_sort = (
            await db.execute(
                select(func.max(Report.sort_order)).where(
                    Report.report_group_id == data.report_group_id
                )
            )
        ).scalar()

        report = Report(
            report_group_id=data.report_group_id,
            code=code,
            name=data.report_name,
            description=data.description,
            report_type=data.report_type.value,
            powerbi_workspace_id=data.powerbi_workspace_id,
            powerbi_report_id=data.powerbi_report_id,
            powerbi_embed_url=data.powerbi_embed_url,
            ssrs_report_path=data.ssrs_report_path,
            ssrs_report_server=data.ssrs_report_server,
            parameters=data.parameters,
            sort_order=(max_sort or 0) + 1,
            is_active=True,
            created_by=created_by.id,
        )
        db.add(report)
        await db.flush()

        now = utc_now()
        for department_id in sorted(department_ids):
            db.add(
                ReportDepartment(
                    report_id=report.id,
                    department_id=department_id,
                    granted_by=created_by.id,
                    granted_at=now,
                )
            )
        await db.commit()

        logger.info(
            "Report created | report=%s code=%s group=%s departments=%s",
            report.id, code, data.report_group_id, sorted(department_ids),
        )
        return await self.get_admin_report(db, report.id)

    async def update_report(
        self, db: AsyncSession, report_id: int, data: ReportUpdate, updated_by: User
    ) -> AdminReportResponse:
        report = await self._get_or_404(db, report_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("report_group_id") is not None:
            await self._require_group(db, changes["report_group_id"])
            report.report_group_id = changes["report_group_id"]
        if changes.get("report_name") is not None:
            report.name = changes["report_name"]
            report.code = await unique_code(
                db, Report.code, code_from_name(changes["report_name"]), exclude_id=report_id
            )
        if changes.get("report_type") is not None:
            report.report_type = ReportType(changes["report_type"]).value

        for key in (
            "description",
            "powerbi_workspace_id",
            "powerbi_report_id",
            "powerbi_embed_url",
            "ssrs_report_path",
            "ssrs_report_server",
            "parameters",
            "sort_order",
            "is_active",
        ):
            if changes.get(key) is not None:
                setattr(report, key, changes[key])

        if data.department_ids is not None:
            await self._replace_department_tags(db, report, data.department_ids, updated_by)

        await db.commit()
        logger.info("Report updated | report=%s fields=%s", report_id, sorted(changes))
        return await self.get_admin_report(db, report_id)

    async def _replace_department_tags(
        self, db: AsyncSession, report: Report, department_ids: list[int], granted_by: User
    ) -> None:
        wanted = await self._require_departments(db, department_ids)
        current = {tag.department_id for tag in report.department_tags}

        stale = current - wanted
        if stale:
            await db.execute(
                delete(ReportDepartment).where(
                    ReportDepartment.report_id == report.id,
                    ReportDepartment.department_id.in_(stale),
                )
            )
        now = utc_now()
        for department_id in sorted(wanted - current):
            db.add(
                ReportDepartment(
                    report_id=report.id,
                    department_id=department_id,
                    granted_by=granted_by.id,
                    granted_at=now,
                )
            )

    async def delete_report(self, db: AsyncSession, report_id: int, hard_delete: bool = False) -> None:
        report = await self._get_or_404(db, report_id)
        if hard_delete:
            await db.execute(delete(Report).where(Report.id == report_id))
            db.expunge(report)
        else:
            report.is_active = False
        await db.commit()
        logger.info("Report deleted | report=%s hard=%s", report_id, hard_delete)


report_service = ReportService()
