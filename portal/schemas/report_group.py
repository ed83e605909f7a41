"""Report group admin schemas."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from portal.schemas.common import CamelModel


class AdminReportGroupResponse(CamelModel):
    report_group_id: int
    hub_id: int
    hub_name: str
    group_code: str
    group_name: str
    description: Optional[str] = None
    sort_order: int
    is_active: bool
    report_count: int = 0
    created_at: datetime


class AdminReportGroupListResponse(CamelModel):
    report_groups: list[AdminReportGroupResponse] = []
    total_count: int = 0


class ReportGroupCreate(CamelModel):
    hub_id: int = Field(..., gt=0)
    group_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class ReportGroupUpdate(CamelModel):
    hub_id: Optional[int] = Field(None, gt=0)
    group_name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    sort_order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
