"""Admin endpoints for the SSRS report server catalogue."""

from fastapi import APIRouter, Depends, Query

from portal.dependencies import get_current_admin_user
from portal.models.user import User
from portal.schemas.report_server import SSRSConfigResponse, SSRSFolderListResponse, SSRSTestResponse
from portal.services.ssrs_catalog_service import ssrs_catalog_service

router = APIRouter()


@router.get("/config", response_model=SSRSConfigResponse)
async def get_config(current_user: User = Depends(get_current_admin_user)):
    return await ssrs_catalog_service.get_config()


@router.get("/browse", response_model=SSRSFolderListResponse)
async def browse(
    path: str = Query("/", max_length=500),
    current_user: User = Depends(get_current_admin_user),
):
    """Sub-folders and reports of ``path``; ``/`` is the configured root folder."""
    return await ssrs_catalog_service.browse(path)


@router.get("/test", response_model=SSRSTestResponse)
async def test_connection(current_user: User = Depends(get_current_admin_user)):
    return SSRSTestResponse(success=await ssrs_catalog_service.test_connection())
