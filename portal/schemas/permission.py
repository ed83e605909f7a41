"""Pydantic schemas for access grants and user permission summaries."""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from portal.schemas.common import CamelModel, to_naive_utc


class GrantHubAccessRequest(CamelModel):
    hub_id: int = Field(..., gt=0)
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def normalise_expiry(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class GrantReportAccessRequest(CamelModel):
    report_id: int = Field(..., gt=0)
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def normalise_expiry(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class GrantDepartmentRequest(CamelModel):
    department_id: int = Field(..., gt=0)


class UpdateAdminRoleRequest(CamelModel):
    is_admin: bool


class DepartmentMembershipResponse(CamelModel):
    user_department_id: int
    department_id: int
    department_code: str
    department_name: str
    granted_at: datetime
    granted_by: Optional[str] = None
    expires_at: Optional[datetime] = None


class HubPermissionResponse(CamelModel):
    permission_id: int
    hub_id: int
    hub_name: str
    granted_at: datetime
    granted_by: Optional[str] = None
    expires_at: Optional[datetime] = None


class ReportGroupPermissionResponse(CamelModel):
    permission_id: int
    report_group_id: int
    group_name: str
    hub_name: str
    granted_at: datetime
    granted_by: Optional[str] = None
    expires_at: Optional[datetime] = None


class ReportPermissionResponse(CamelModel):
    permission_id: int
    report_id: int
    report_name: str
    group_name: str
    hub_id: int
    hub_name: str
    granted_at: datetime
    granted_by: Optional[str] = None
    expires_at: Optional[datetime] = None


class PermissionsResponse(CamelModel):
    hubs: list[HubPermissionResponse] = []
    # Group-level grants are not issued; kept so clients get a stable shape
    report_groups: list[ReportGroupPermissionResponse] = []
    reports: list[ReportPermissionResponse] = []


class UserPermissionsResponse(CamelModel):
    user_id: int
    email: str
    is_admin: bool
    departments: list[DepartmentMembershipResponse] = []
    permissions: PermissionsResponse = PermissionsResponse()


class UserDepartmentsResponse(CamelModel):
    user_id: int
    email: str
    departments: list[DepartmentMembershipResponse] = []
