"""Department admin schemas."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from portal.schemas.common import CamelModel


class DepartmentResponse(CamelModel):
    department_id: int
    department_code: str
    department_name: str
    description: Optional[str] = None
    sort_order: int
    is_active: bool
    user_count: int = 0
    report_count: int = 0
    created_at: datetime


class DepartmentListResponse(CamelModel):
    departments: list[DepartmentResponse] = []


class DepartmentCreate(CamelModel):
    department_code: str = Field(..., min_length=1, max_length=50)
    department_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class DepartmentUpdate(CamelModel):
    department_name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None


class ReorderDepartmentsRequest(CamelModel):
    department_ids: list[int] = Field(..., min_length=1)


class DepartmentUserResponse(CamelModel):
    user_id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    granted_at: datetime
    granted_by: Optional[str] = None
    expires_at: Optional[datetime] = None


class DepartmentUsersResponse(CamelModel):
    department_id: int
    department_name: str
    users: list[DepartmentUserResponse] = []


class DepartmentReportResponse(CamelModel):
    report_id: int
    report_code: str
    report_name: str
    hub_name: str
    group_name: str
    granted_at: datetime
    granted_by: Optional[str] = None


class DepartmentReportsResponse(CamelModel):
    department_id: int
    department_name: str
    reports: list[DepartmentReportResponse] = []
