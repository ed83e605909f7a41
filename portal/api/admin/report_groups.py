"""Admin endpoints for report groups."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.database import get_db
from portal.dependencies import get_current_admin_user
from portal.models.user import User
from portal.schemas.common import SuccessResponse
from portal.schemas.report_group import (
    AdminReportGroupListResponse,
    AdminReportGroupResponse,
    ReportGroupCreate,
    ReportGroupUpdate,
)
from portal.services.report_group_service import report_group_service

router = APIRouter()


@router.get("", response_model=AdminReportGroupListResponse)
async def list_report_groups(
    include_inactive: bool = Query(False, alias="includeInactive"),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await report_group_service.list_groups(db, include_inactive=include_inactive)


@router.get("/by-hub/{hub_id}", response_model=AdminReportGroupListResponse)
async def list_report_groups_by_hub(
    hub_id: int,
    include_inactive: bool = Query(False, alias="includeInactive"),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await report_group_service.list_groups(
        db, include_inactive=include_inactive, hub_id=hub_id
    )


@router.get("/{group_id}", response_model=AdminReportGroupResponse)
async def get_report_group(
    group_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await report_group_service.get_group(db, group_id)


@router.post("", response_model=AdminReportGroupResponse, status_code=201)
async def create_report_group(
    data: ReportGroupCreate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await report_group_service.create_group(db, data, created_by=current_user)


@router.put("/{group_id}", response_model=AdminReportGroupResponse)
async def update_report_group(
    group_id: int,
    data: ReportGroupUpdate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await report_group_service.update_group(db, group_id, data)


@router.delete("/{group_id}", response_model=SuccessResponse)
async def delete_report_group(
    group_id: int,
    hard_delete: bool = Query(False, alias="hardDelete"),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    await report_group_service.delete_group(db, group_id, hard_delete=hard_delete)
    return SuccessResponse(
        message="Report group deleted" if hard_delete else "Report group deactivated"
    )
