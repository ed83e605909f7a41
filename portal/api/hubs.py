"""Hub browsing endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.database import get_db
from portal.dependencies import get_current_user
from portal.models.user import User
from portal.schemas.hub import HubDetailResponse, HubListResponse, HubReportsResponse
from portal.services.hub_service import hub_service

router = APIRouter()


@router.get("", response_model=HubListResponse)
async def list_hubs(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Hubs the caller can see, in display order."""
    return await hub_service.list_accessible_hubs(db, current_user)


@router.get("/{hub_id}", response_model=HubDetailResponse)
async def get_hub(
    hub_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Hub with the reports the caller can open and how access was obtained."""
    return await hub_service.get_hub_detail(db, current_user, hub_id)


@router.get("/{hub_id}/reports", response_model=HubReportsResponse)
async def get_hub_reports(
    hub_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await hub_service.get_hub_reports(db, current_user, hub_id)
