"""Admin endpoints for departments and their report tags."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.database import get_db
from portal.dependencies import get_current_admin_user
from portal.models.user import User
from portal.schemas.common import SuccessResponse
from portal.schemas.department import (
    DepartmentCreate,
    DepartmentListResponse,
    DepartmentReportsResponse,
    DepartmentResponse,
    DepartmentUpdate,
    DepartmentUsersResponse,
    ReorderDepartmentsRequest,
)
from portal.services.department_service import department_service

router = APIRouter()


@router.get("", response_model=DepartmentListResponse)
async def list_departments(
    include_inactive: bool = Query(False, alias="includeInactive"),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await department_service.list_departments(db, include_inactive=include_inactive)


@router.put("/reorder", response_model=SuccessResponse)
async def reorder_departments(
    data: ReorderDepartmentsRequest,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    await department_service.reorder_departments(db, data.department_ids)
    return SuccessResponse(message="Departments reordered")


@router.get("/{department_id}", response_model=DepartmentResponse)
async def get_department(
    department_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await department_service.get_department(db, department_id)


@router.post("", response_model=DepartmentResponse, status_code=201)
async def create_department(
    data: DepartmentCreate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await department_service.create_department(db, data, created_by=current_user)


@router.put("/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: int,
    data: DepartmentUpdate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await department_service.update_department(db, department_id, data)


@router.delete("/{department_id}", response_model=SuccessResponse)
async def delete_department(
    department_id: int,
    hard_delete: bool = Query(False, alias="hardDelete"),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    await department_service.delete_department(db, department_id, hard_delete=hard_delete)
    return SuccessResponse(
        message="Department deleted" if hard_delete else "Department deactivated"
    )


# ---------------------------------------------------------------------------
# Members and report tags
# ---------------------------------------------------------------------------


@router.get("/{department_id}/users", response_model=DepartmentUsersResponse)
async def list_department_users(
    department_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await department_service.list_users(db, department_id)


@router.get("/{department_id}/reports", response_model=DepartmentReportsResponse)
async def list_department_reports(
    department_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await department_service.list_reports(db, department_id)


@router.post("/{department_id}/reports/{report_id}", response_model=SuccessResponse)
async def add_department_report(
    department_id: int,
    report_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """Tag a report with the department, making it visible to every member."""
    added = await department_service.add_report_tag(
        db, department_id, report_id, granted_by=current_user
    )
    return SuccessResponse(
        message="Report added to department" if added else "Report already in department"
    )


@router.delete("/{department_id}/reports/{report_id}", response_model=SuccessResponse)
async def remove_department_report(
    department_id: int,
    report_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    await department_service.remove_report_tag(db, department_id, report_id)
    return SuccessResponse(message="Report removed from department")
