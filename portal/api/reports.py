"""Report viewing endpoints."""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.database import get_db
from portal.dependencies import client_ip, get_current_user
from portal.models.user import User
from portal.schemas.report import ReportEmbedResponse, ReportResponse
from portal.services.report_service import report_service

router = APIRouter()


@router.get("/{report_id}", response_model=ReportResponse)
async def get_report(
    report_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await report_service.get_report(db, current_user, report_id)


@router.get("/{report_id}/embed", response_model=ReportEmbedResponse)
async def get_report_embed(
    report_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Viewer URL (SSRS) or embed URL (Power BI / paginated) plus parameters."""
    return await report_service.get_embed(db, current_user, report_id)


@router.get("/{report_id}/render")
async def render_report(
    report_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Relay the SSRS rendering of the report, bytes and content type untouched."""
    rendered = await report_service.render(db, current_user, report_id)
    return Response(content=rendered.content, media_type=rendered.content_type)


@router.post("/{report_id}/access", status_code=status.HTTP_204_NO_CONTENT)
async def record_report_access(
    report_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Record that the caller opened the report."""
    await report_service.record_access(
        db,
        current_user,
        report_id,
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
