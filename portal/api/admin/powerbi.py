"""Admin endpoints for the Power BI workspace browser."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.database import get_db
from portal.dependencies import get_current_admin_user
from portal.models.user import User
from portal.schemas.report_server import (
    PowerBIConfigResponse,
    PowerBIEmbedInfo,
    PowerBIReportListResponse,
    PowerBITestResponse,
    PowerBIWorkspaceListResponse,
)
from portal.services.powerbi_service import powerbi_service

router = APIRouter()


@router.get("/config", response_model=PowerBIConfigResponse)
async def get_config(current_user: User = Depends(get_current_admin_user)):
    return await powerbi_service.get_config()


@router.get("/test", response_model=PowerBITestResponse)
async def test_connection(current_user: User = Depends(get_current_admin_user)):
    return PowerBITestResponse(is_connected=await powerbi_service.test_connection())


@router.get("/workspaces", response_model=PowerBIWorkspaceListResponse)
async def list_workspaces(current_user: User = Depends(get_current_admin_user)):
    return await powerbi_service.list_workspaces()


@router.get("/workspaces/{workspace_id}/reports", response_model=PowerBIReportListResponse)
async def list_workspace_reports(
    workspace_id: str,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """Reports in a workspace, marked when already imported into the portal."""
    return await powerbi_service.list_workspace_reports(db, workspace_id)


@router.get(
    "/workspaces/{workspace_id}/reports/{report_id}/embed", response_model=PowerBIEmbedInfo
)
async def get_embed_info(
    workspace_id: str,
    report_id: str,
    current_user: User = Depends(get_current_admin_user),
):
    return await powerbi_service.get_embed_info(workspace_id, report_id)
