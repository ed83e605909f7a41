"""Department administration and report tagging.

Departments only grant access through the report tags managed here: a member
of department D sees every active report tagged with D, and with it the
report's hub.
"""

import logging
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal.core.exceptions import NotFoundError, ValidationError
from portal.crud.access import access_grant_crud, live_grant
from portal.models.department import Department, ReportDepartment, UserDepartment
from portal.models.hub import Report, ReportGroup
from portal.models.user import User
from portal.schemas.department import (
    DepartmentCreate,
    DepartmentListResponse,
    DepartmentReportResponse,
    DepartmentReportsResponse,
    DepartmentResponse,
    DepartmentUpdate,
    DepartmentUserResponse,
    DepartmentUsersResponse,
)
from portal.utils.code_utils import code_from_name
from portal.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


def _granter_email(row) -> Optional[str]:
    return row.granted_by_user.email if row.granted_by_user is not None else None


class DepartmentService:

    async def _counts(self, db: AsyncSession) -> tuple[dict[int, int], dict[int, int]]:
        """(live member count, tagged report count) per department."""
        users = await db.execute(
            select(UserDepartment.department_id, func.count(UserDepartment.id))
            .where(live_grant(UserDepartment, utc_now()))
            .group_by(UserDepartment.department_id)
        )
        reports = await db.execute(
            select(ReportDepartment.department_id, func.count(ReportDepartment.id))
            .group_by(ReportDepartment.department_id)
        )
        return dict(users.all()), dict(reports.all())

    def _to_response(
        self, department: Department, user_counts: dict[int, int], report_counts: dict[int, int]
    ) -> DepartmentResponse:
        return DepartmentResponse(
            department_id=department.id,
            department_code=department.code,
            department_name=department.name,
            description=department.description,
            sort_order=department.sort_order,
            is_active=department.is_active,
            user_count=user_counts.get(department.id, 0),
            report_count=report_counts.get(department.id, 0),
            created_at=department.created_at,
        )

    async def _get_or_404(self, db: AsyncSession, department_id: int) -> Department:
        department = await db.get(Department, department_id)
        if department is None:
            raise NotFoundError(f"Department {department_id} not found")
        return department

    # ---------------------------------------------------------------------------
    # CRUD
    # ---------------------------------------------------------------------------

    async def list_departments(
        self, db: AsyncSession, include_inactive: bool = False
    ) -> DepartmentListResponse:
        stmt = select(Department).order_by(Department.sort_order, Department.name)
        if not include_inactive:
            stmt = stmt.where(Department.is_active.is_(True))
        departments = list((await db.execute(stmt)).scalars().all())

        user_counts, report_counts = await self._counts(db)
        return DepartmentListResponse(
            departments=[self._to_response(d, user_counts, report_counts) for d in departments]
        )

    async def get_department(self, db: AsyncSession, department_id: int) -> DepartmentResponse:
        department = await self._get_or_404(db, department_id)
        return self._to_response(department, *await self._counts(db))

    async def create_department(
        self, db: AsyncSession, data: DepartmentCreate, created_by: User
    ) -> DepartmentResponse:
        code = code_from_name(data.department_code)
        taken = await db.execute(select(Department.id).where(Department.code == code))
        if taken.scalar_one_or_none() is not None:
            raise ValidationError(f"Department code '{code}' already exists")

        max_sort = (await db.execute(select(func.max(Department.sort_order)))).scalar()
        department = Department(
            code=code,
            name=data.department_name,
            description=data.description,
            sort_order=(max_sort or 0) + 1,
            is_active=True,
            created_by=created_by.id,
        )
        db.add(department)
        await db.commit()

        logger.info("Department created | department=%s code=%s", department.id, code)
        return self._to_response(department, {}, {})

    async def update_department(
        self, db: AsyncSession, department_id: int, data: DepartmentUpdate
    ) -> DepartmentResponse:
        department = await self._get_or_404(db, department_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("department_name") is not None:
            department.name = changes["department_name"]
        if "description" in changes:
            department.description = changes["description"]
        if changes.get("is_active") is not None:
            department.is_active = changes["is_active"]

        await db.commit()
        return await self.get_department(db, department_id)

    async def delete_department(
        self, db: AsyncSession, department_id: int, hard_delete: bool = False
    ) -> None:
        """Soft delete keeps memberships and tags in place; hard delete removes them."""
        department = await self._get_or_404(db, department_id)
        if hard_delete:
            await db.execute(delete(Department).where(Department.id == department_id))
            db.expunge(department)
        else:
            department.is_active = False
        await db.commit()
        logger.info("Department deleted | department=%s hard=%s", department_id, hard_delete)

    async def reorder_departments(self, db: AsyncSession, department_ids: list[int]) -> None:
        for position, department_id in enumerate(department_ids, start=1):
            await db.execute(
                update(Department).where(Department.id == department_id).values(sort_order=position)
            )
        await db.commit()

    # ---------------------------------------------------------------------------
    # Members and report tags
    # ---------------------------------------------------------------------------

    async def list_users(self, db: AsyncSession, department_id: int) -> DepartmentUsersResponse:
        department = await self._get_or_404(db, department_id)
        result = await db.execute(
            select(UserDepartment)
            .options(selectinload(UserDepartment.user), selectinload(UserDepartment.granted_by_user))
            .where(
                UserDepartment.department_id == department_id,
                live_grant(UserDepartment, utc_now()),
            )
            .order_by(UserDepartment.granted_at)
        )
        return DepartmentUsersResponse(
            department_id=department.id,
            department_name=department.name,
            users=[
                DepartmentUserResponse(
                    user_id=m.user.id,
                    email=m.user.email,
                    first_name=m.user.first_name,
                    last_name=m.user.last_name,
                    display_name=m.user.display_name,
                    granted_at=m.granted_at,
                    granted_by=_granter_email(m),
                    expires_at=m.expires_at,
                )
                for m in result.scalars().all()
            ],
        )

    async def list_reports(self, db: AsyncSession, department_id: int) -> DepartmentReportsResponse:
        department = await self._get_or_404(db, department_id)
        result = await db.execute(
            select(ReportDepartment)
            .options(
                selectinload(ReportDepartment.report)
                .selectinload(Report.report_group)
                .selectinload(ReportGroup.hub),
                selectinload(ReportDepartment.granted_by_user),
            )
            .where(ReportDepartment.department_id == department_id)
            .order_by(ReportDepartment.granted_at)
        )
        return DepartmentReportsResponse(
            department_id=department.id,
            department_name=department.name,
            reports=[
                DepartmentReportResponse(
                    report_id=tag.report.id,
                    report_code=tag.report.code,
                    report_name=tag.report.name,
                    hub_name=tag.report.report_group.hub.name,
                    group_name=tag.report.report_group.name,
                    granted_at=tag.granted_at,
                    granted_by=_granter_email(tag),
                )
                for tag in result.scalars().all()
            ],
        )

    async def add_report_tag(
        self, db: AsyncSession, department_id: int, report_id: int, granted_by: User
    ) -> bool:
        """Tag *report_id* with the department; no-op when already tagged."""
        await self._get_or_404(db, department_id)
        if await db.get(Report, report_id) is None:
            raise NotFoundError(f"Report {report_id} not found")

        inserted = await access_grant_crud.insert_if_absent(
            db,
            ReportDepartment,
            {
                "report_id": report_id,
                "department_id": department_id,
                "granted_by": granted_by.id,
                "granted_at": utc_now(),
            },
            key=["report_id", "department_id"],
        )
        await db.commit()
        return bool(inserted)

    async def remove_report_tag(self, db: AsyncSession, department_id: int, report_id: int) -> bool:
        result = await db.execute(
            delete(ReportDepartment).where(
                ReportDepartment.department_id == department_id,
                ReportDepartment.report_id == report_id,
            )
        )
        await db.commit()
        return bool(result.rowcount)


department_service = DepartmentService()
