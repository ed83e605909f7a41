"""Admin endpoints for users: lifecycle, departments, grants and the admin role."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import settings
from portal.core.database import get_db
from portal.dependencies import client_ip, get_current_admin_user
from portal.models.user import User
from portal.schemas.common import SuccessResponse
from portal.schemas.permission import (
    GrantDepartmentRequest,
    GrantHubAccessRequest,
    GrantReportAccessRequest,
    UpdateAdminRoleRequest,
    UserDepartmentsResponse,
    UserPermissionsResponse,
)
from portal.schemas.user_admin import (
    AdminUserListResponse,
    AdminUserResponse,
    AuditEntryListResponse,
    ExpireUserRequest,
)
from portal.services.permission_service import permission_service
from portal.services.user_admin_service import user_admin_service

router = APIRouter()


@router.get("", response_model=AdminUserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(
        settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, alias="pageSize"
    ),
    search: Optional[str] = Query(None, max_length=100),
    include_inactive: bool = Query(False, alias="includeInactive"),
    include_expired: bool = Query(False, alias="includeExpired"),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await user_admin_service.list_users(
        db,
        page=page,
        page_size=page_size,
        search=search,
        include_inactive=include_inactive,
        include_expired=include_expired,
    )


@router.get("/{user_id}", response_model=AdminUserResponse)
async def get_user(
    user_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await user_admin_service.get_user(db, user_id)


@router.get("/{user_id}/permissions", response_model=UserPermissionsResponse)
async def get_user_permissions(
    user_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """Departments and live hub/report grants of a user."""
    return await permission_service.get_user_permissions(db, user_id)


@router.get("/{user_id}/audit", response_model=AuditEntryListResponse)
async def get_user_audit(
    user_id: int,
    limit: int = Query(50, ge=1, le=500),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await user_admin_service.list_audit(db, user_id, limit=limit)


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------


@router.get("/{user_id}/departments", response_model=UserDepartmentsResponse)
async def get_user_departments(
    user_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await permission_service.get_user_departments(db, user_id)


@router.post("/{user_id}/departments", response_model=SuccessResponse)
async def assign_department(
    user_id: int,
    data: GrantDepartmentRequest,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    added = await permission_service.assign_user_to_department(
        db, user_id, data.department_id, granted_by=current_user, ip_address=client_ip(request)
    )
    return SuccessResponse(
        message="User assigned to department" if added else "User already in department"
    )


@router.delete("/{user_id}/departments/{department_id}", response_model=SuccessResponse)
async def remove_department(
    user_id: int,
    department_id: int,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    await permission_service.remove_user_from_department(
        db, user_id, department_id, removed_by=current_user, ip_address=client_ip(request)
    )
    return SuccessResponse(message="User removed from department")


# ---------------------------------------------------------------------------
# Direct grants
# ---------------------------------------------------------------------------


@router.post("/{user_id}/permissions/hub", response_model=SuccessResponse)
async def grant_hub_access(
    user_id: int,
    data: GrantHubAccessRequest,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """Grant a hub; re-granting replaces the expiry and the granter."""
    await permission_service.grant_hub_access(
        db,
        user_id,
        data.hub_id,
        granted_by=current_user,
        expires_at=data.expires_at,
        ip_address=client_ip(request),
    )
    return SuccessResponse(message="Hub access granted")


@router.delete("/{user_id}/permissions/hub/{hub_id}", response_model=SuccessResponse)
async def revoke_hub_access(
    user_id: int,
    hub_id: int,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    await permission_service.revoke_hub_access(
        db, user_id, hub_id, revoked_by=current_user, ip_address=client_ip(request)
    )
    return SuccessResponse(message="Hub access revoked")


@router.post("/{user_id}/permissions/report", response_model=SuccessResponse)
async def grant_report_access(
    user_id: int,
    data: GrantReportAccessRequest,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    await permission_service.grant_report_access(
        db,
        user_id,
        data.report_id,
        granted_by=current_user,
        expires_at=data.expires_at,
        ip_address=client_ip(request),
    )
    return SuccessResponse(message="Report access granted")


@router.delete("/{user_id}/permissions/report/{report_id}", response_model=SuccessResponse)
async def revoke_report_access(
    user_id: int,
    report_id: int,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    await permission_service.revoke_report_access(
        db, user_id, report_id, revoked_by=current_user, ip_address=client_ip(request)
    )
    return SuccessResponse(message="Report access revoked")


# ---------------------------------------------------------------------------
# Roles and lifecycle
# ---------------------------------------------------------------------------


@router.put("/{user_id}/admin", response_model=SuccessResponse)
async def update_admin_role(
    user_id: int,
    data: UpdateAdminRoleRequest,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    await permission_service.update_user_admin_role(
        db, user_id, data.is_admin, granted_by=current_user, ip_address=client_ip(request)
    )
    return SuccessResponse(
        message="Admin role granted" if data.is_admin else "Admin role removed"
    )


@router.put("/{user_id}/unlock", response_model=SuccessResponse)
async def unlock_user(
    user_id: int,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    await user_admin_service.unlock_user(db, user_id, current_user, client_ip(request))
    return SuccessResponse(message="User unlocked")


@router.put("/{user_id}/expire", response_model=SuccessResponse)
async def expire_user(
    user_id: int,
    request: Request,
    data: Optional[ExpireUserRequest] = None,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """Expire an account. Expired users can neither sign in nor call the API."""
    await user_admin_service.expire_user(
        db,
        user_id,
        current_user,
        reason=data.reason if data else None,
        ip_address=client_ip(request),
    )
    return SuccessResponse(message="User expired")


@router.put("/{user_id}/restore", response_model=SuccessResponse)
async def restore_user(
    user_id: int,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    await user_admin_service.restore_user(db, user_id, current_user, client_ip(request))
    return SuccessResponse(message="User restored")
