"""Admin user-management schemas."""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from portal.schemas.common import CamelModel, PaginationInfo


class AdminUserResponse(CamelModel):
    user_id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    company: Optional[str] = None
    roles: list[str] = []
    is_active: bool
    is_expired: bool
    expired_at: Optional[datetime] = None
    expiration_reason: Optional[str] = None
    is_locked_out: bool
    last_login_at: Optional[datetime] = None
    login_count: int = 0
    created_at: datetime
    department_count: int = 0
    hub_count: int = 0
    report_count: int = 0


class AdminUserListResponse(CamelModel):
    users: list[AdminUserResponse] = []
    pagination: PaginationInfo


class ExpireUserRequest(CamelModel):
    reason: Optional[str] = Field(None, max_length=500)


class AuditEntryResponse(CamelModel):
    audit_id: int
    action: str
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    created_at: datetime


class AuditEntryListResponse(CamelModel):
    entries: list[AuditEntryResponse] = []
