"""Admin endpoints for reports."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.database import get_db
from portal.dependencies import get_current_admin_user
from portal.models.user import User
from portal.schemas.common import SuccessResponse
from portal.schemas.report import (
    AdminReportListResponse,
    AdminReportResponse,
    ReportCreate,
    ReportUpdate,
)
from portal.services.report_service import report_service

router = APIRouter()


@router.get("", response_model=AdminReportListResponse)
async def list_reports(
    include_inactive: bool = Query(False, alias="includeInactive"),
    report_group_id: Optional[int] = Query(None, alias="reportGroupId"),
    hub_id: Optional[int] = Query(None, alias="hubId"),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await report_service.list_reports(
        db,
        include_inactive=include_inactive,
        report_group_id=report_group_id,
        hub_id=hub_id,
    )


@router.get("/{report_id}", response_model=AdminReportResponse)
async def get_report(
    report_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await report_service.get_admin_report(db, report_id)


@router.post("", response_model=AdminReportResponse, status_code=201)
async def create_report(
    data: ReportCreate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a report at the end of its group; ``departmentIds`` become tags."""
    return await report_service.create_report(db, data, created_by=current_user)


@router.put("/{report_id}", response_model=AdminReportResponse)
async def update_report(
    report_id: int,
    data: ReportUpdate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await report_service.update_report(db, report_id, data, updated_by=current_user)


@router.delete("/{report_id}", response_model=SuccessResponse)
async def delete_report(
    report_id: int,
    hard_delete: bool = Query(False, alias="hardDelete"),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    await report_service.delete_report(db, report_id, hard_delete=hard_delete)
    return SuccessResponse(message="Report deleted" if hard_delete else "Report deactivated")
