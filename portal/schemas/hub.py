"""Hub schemas: the browsing DTOs and the admin CRUD payloads."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from portal.schemas.common import CamelModel


class HubResponse(CamelModel):
    """Hub tile as listed by ``GET /api/hubs``."""

    hub_id: int
    hub_code: str
    hub_name: str
    description: Optional[str] = None
    icon_name: Optional[str] = None
    color_class: Optional[str] = None
    background_image: Optional[str] = None
    report_count: int = 0


class HubListResponse(CamelModel):
    hubs: list[HubResponse] = []


class HubReportResponse(CamelModel):
    report_id: int
    report_code: str
    report_name: str
    description: Optional[str] = None
    report_type: str
    group_id: int
    group_name: str
    # Admin, Hub, Direct or Department
    access_level: str


class HubDetailResponse(CamelModel):
    hub_id: int
    hub_code: str
    hub_name: str
    description: Optional[str] = None
    icon_name: Optional[str] = None
    color_class: Optional[str] = None
    background_image: Optional[str] = None
    reports: list[HubReportResponse] = []


class HubReportsResponse(CamelModel):
    hub_id: int
    reports: list[HubReportResponse] = []


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class AdminHubResponse(CamelModel):
    hub_id: int
    hub_code: str
    hub_name: str
    description: Optional[str] = None
    icon_name: Optional[str] = None
    color_class: Optional[str] = None
    background_image: Optional[str] = None
    sort_order: int
    is_active: bool
    report_group_count: int = 0
    report_count: int = 0
    created_at: datetime


class AdminHubListResponse(CamelModel):
    hubs: list[AdminHubResponse] = []
    total_count: int = 0


class HubCreate(CamelModel):
    hub_name: str = Field(..., min_length=1, max_length=100)
    # Derived from the name when omitted
    hub_code: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    icon_name: Optional[str] = Field(None, max_length=50)
    color_class: Optional[str] = Field(None, max_length=50)
    background_image: Optional[str] = Field(None, max_length=100)


class HubUpdate(CamelModel):
    hub_name: Optional[str] = Field(None, min_length=1, max_length=100)
    hub_code: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    icon_name: Optional[str] = Field(None, max_length=50)
    color_class: Optional[str] = Field(None, max_length=50)
    background_image: Optional[str] = Field(None, max_length=100)
    sort_order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ReorderHubsRequest(CamelModel):
    hub_ids: list[int] = Field(..., min_length=1)
