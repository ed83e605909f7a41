"""Report schemas: viewer DTOs, embed config, favorites and admin CRUD."""

import json
from datetime import datetime
from typing import Optional

from pydantic import Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from portal.models.hub import ReportType
from portal.schemas.common import CamelModel


class ReportParameter(CamelModel):
    name: str = Field(..., min_length=1)
    type: str = "String"
    required: bool = False


_parameter_list = TypeAdapter(list[ReportParameter])


def check_parameters_json(v: Optional[str]) -> Optional[str]:
    """Require a JSON array of parameter objects, each with a name."""
    if v is None or not v.strip():
        return None
    try:
        items = json.loads(v)
    except ValueError:
        raise ValueError("parameters must be valid JSON")
    if not isinstance(items, list):
        raise ValueError("parameters must be a JSON array")
    try:
        _parameter_list.validate_python(items)
    except PydanticValidationError as exc:
        raise ValueError(f"invalid report parameter: {exc.errors()[0]['msg']}")
    return v


class EmbedConfig(CamelModel):
    workspace_id: Optional[str] = None
    report_id: Optional[str] = None
    embed_url: Optional[str] = None
    server_url: Optional[str] = None
    report_path: Optional[str] = None


class ReportResponse(CamelModel):
    report_id: int
    report_code: str
    report_name: str
    description: Optional[str] = None
    report_type: str
    hub_id: int
    hub_name: str
    report_group_id: int
    report_group_name: str
    embed_config: Optional[EmbedConfig] = None


class ReportEmbedResponse(CamelModel):
    report_id: int
    report_type: str
    # Power BI / paginated
    embed_url: Optional[str] = None
    # SSRS
    report_url: Optional[str] = None
    parameters: list[ReportParameter] = []


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------


class FavoriteResponse(CamelModel):
    user_favorite_id: int
    report_id: int
    report_code: str
    report_name: str
    description: Optional[str] = None
    report_type: str
    hub_id: int
    hub_name: str
    sort_order: int


class FavoriteListResponse(CamelModel):
    favorites: list[FavoriteResponse] = []


class ReorderFavoritesRequest(CamelModel):
    report_ids: list[int] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class AdminReportResponse(CamelModel):
    report_id: int
    report_group_id: int
    report_group_name: str
    hub_id: int
    hub_name: str
    report_code: str
    report_name: str
    description: Optional[str] = None
    report_type: str
    powerbi_workspace_id: Optional[str] = None
    powerbi_report_id: Optional[str] = None
    powerbi_embed_url: Optional[str] = None
    ssrs_report_path: Optional[str] = None
    ssrs_report_server: Optional[str] = None
    parameters: Optional[str] = None
    sort_order: int
    is_active: bool
    created_at: datetime
    department_ids: list[int] = []


class AdminReportListResponse(CamelModel):
    reports: list[AdminReportResponse] = []
    total_count: int = 0


class ReportCreate(CamelModel):
    report_group_id: int = Field(..., gt=0)
    report_name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    report_type: ReportType = ReportType.SSRS
    powerbi_workspace_id: Optional[str] = Field(None, max_length=100)
    powerbi_report_id: Optional[str] = Field(None, max_length=100)
    powerbi_embed_url: Optional[str] = Field(None, max_length=1000)
    ssrs_report_path: Optional[str] = Field(None, max_length=500)
    ssrs_report_server: Optional[str] = Field(None, max_length=200)
    parameters: Optional[str] = None
    department_ids: Optional[list[int]] = None

    @field_validator("parameters")
    @classmethod
    def validate_parameters(cls, v: Optional[str]) -> Optional[str]:
        return check_parameters_json(v)


class ReportUpdate(CamelModel):
    report_group_id: Optional[int] = Field(None, gt=0)
    report_name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    report_type: Optional[ReportType] = None
    powerbi_workspace_id: Optional[str] = Field(None, max_length=100)
    powerbi_report_id: Optional[str] = Field(None, max_length=100)
    powerbi_embed_url: Optional[str] = Field(None, max_length=1000)
    ssrs_report_path: Optional[str] = Field(None, max_length=500)
    ssrs_report_server: Optional[str] = Field(None, max_length=200)
    parameters: Optional[str] = None
    sort_order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    # Replaces the current department tags when supplied
    department_ids: Optional[list[int]] = None

    @field_validator("parameters")
    @classmethod
    def validate_parameters(cls, v: Optional[str]) -> Optional[str]:
        return check_parameters_json(v)
