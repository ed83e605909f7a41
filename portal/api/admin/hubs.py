"""Admin endpoints for reporting hubs."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.database import get_db
from portal.dependencies import get_current_admin_user
from portal.models.user import User
from portal.schemas.common import SuccessResponse
from portal.schemas.hub import (
    AdminHubListResponse,
    AdminHubResponse,
    HubCreate,
    HubUpdate,
    ReorderHubsRequest,
)
from portal.services.hub_service import hub_service

router = APIRouter()


@router.get("", response_model=AdminHubListResponse)
async def list_hubs(
    include_inactive: bool = Query(False, alias="includeInactive"),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await hub_service.list_hubs(db, include_inactive=include_inactive)


@router.put("/reorder", response_model=SuccessResponse)
async def reorder_hubs(
    data: ReorderHubsRequest,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """Set each hub's sort order to its position in ``hubIds``."""
    await hub_service.reorder_hubs(db, data.hub_ids)
    return SuccessResponse(message="Hubs reordered")


@router.get("/{hub_id}", response_model=AdminHubResponse)
async def get_hub(
    hub_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await hub_service.get_hub(db, hub_id)


@router.post("", response_model=AdminHubResponse, status_code=201)
async def create_hub(
    data: HubCreate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await hub_service.create_hub(db, data, created_by=current_user)


@router.put("/{hub_id}", response_model=AdminHubResponse)
async def update_hub(
    hub_id: int,
    data: HubUpdate,
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await hub_service.update_hub(db, hub_id, data, updated_by=current_user)


@router.delete("/{hub_id}", response_model=SuccessResponse)
async def delete_hub(
    hub_id: int,
    hard_delete: bool = Query(False, alias="hardDelete"),
    current_user: User = Depends(get_current_admin_user),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate a hub, or remove it with everything under it when ``hardDelete``."""
    await hub_service.delete_hub(db, hub_id, hard_delete=hard_delete)
    return SuccessResponse(message="Hub deleted" if hard_delete else "Hub deactivated")
