"""Admin schemas for the report servers: SSRS catalogue and Power BI workspaces."""

from datetime import datetime
from typing import Optional

from portal.schemas.common import CamelModel


class SSRSCatalogItem(CamelModel):
    name: str
    path: str
    type_name: str
    description: Optional[str] = None
    modified_date: Optional[datetime] = None


class SSRSFolderListResponse(CamelModel):
    """One folder of the report server.

    Failures are reported in-band (``success=False`` with ``errorMessage``)
    so the admin catalogue page can show them next to the folder tree.
    """

    current_path: str
    folders: list[SSRSCatalogItem] = []
    reports: list[SSRSCatalogItem] = []
    success: bool = True
    error_message: Optional[str] = None


class SSRSConfigResponse(CamelModel):
    server_url: str
    is_available: bool
    error_message: Optional[str] = None


class SSRSTestResponse(CamelModel):
    success: bool


class PowerBIConfigResponse(CamelModel):
    is_configured: bool
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    is_connected: bool = False
    error_message: Optional[str] = None


class PowerBITestResponse(CamelModel):
    is_connected: bool


class PowerBIWorkspace(CamelModel):
    workspace_id: str
    workspace_name: str
    description: str = ""
    type: str = "Workspace"
    report_count: int = 0
    paginated_report_count: int = 0


class PowerBIWorkspaceListResponse(CamelModel):
    workspaces: list[PowerBIWorkspace] = []


class PowerBIReport(CamelModel):
    report_id: str
    report_name: str
    description: str = ""
    dataset_id: str = ""
    embed_url: Optional[str] = None
    report_type: str = "PowerBIReport"
    already_imported: bool = False
    existing_report_id: Optional[int] = None


class PowerBIReportListResponse(CamelModel):
    reports: list[PowerBIReport] = []


class PowerBIEmbedInfo(CamelModel):
    embed_url: Optional[str] = None
    embed_token: str
    report_id: str
    token_expiry: Optional[datetime] = None
