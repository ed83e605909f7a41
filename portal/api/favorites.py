"""Favorite report endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.database import get_db
from portal.dependencies import get_current_user
from portal.models.user import User
from portal.schemas.common import SuccessResponse
from portal.schemas.report import FavoriteListResponse, ReorderFavoritesRequest
from portal.services.favorite_service import favorite_service

router = APIRouter()


@router.get("", response_model=FavoriteListResponse)
async def list_favorites(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await favorite_service.list_favorites(db, current_user)


# Declared before /{report_id} so "reorder" is not parsed as an id
@router.put("/reorder", response_model=SuccessResponse)
async def reorder_favorites(
    data: ReorderFavoritesRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await favorite_service.reorder_favorites(db, current_user, data.report_ids)
    return SuccessResponse(message="Favorites reordered")


@router.post("/{report_id}", response_model=SuccessResponse)
async def add_favorite(
    report_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    added = await favorite_service.add_favorite(db, current_user, report_id)
    return SuccessResponse(message="Added to favorites" if added else "Already in favorites")


@router.delete("/{report_id}", response_model=SuccessResponse)
async def remove_favorite(
    report_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await favorite_service.remove_favorite(db, current_user, report_id)
    return SuccessResponse(message="Removed from favorites")
