"""Admin view of Power BI: service principal status, workspaces, reports and embed tokens."""

import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.exceptions import RelayError, ValidationError
from portal.models.hub import Report
from portal.schemas.report_server import (
    PowerBIConfigResponse,
    PowerBIEmbedInfo,
    PowerBIReport,
    PowerBIReportListResponse,
    PowerBIWorkspace,
    PowerBIWorkspaceListResponse,
)
from portal.services.report_relay.powerbi import PowerBIClient, powerbi_client

logger = logging.getLogger(__name__)

NOT_CONFIGURED = (
    "Power BI is not configured. Set POWERBI_TENANT_ID, POWERBI_CLIENT_ID "
    "and POWERBI_CLIENT_SECRET."
)

# reportType values reported by the REST API
INTERACTIVE_REPORT = "PowerBIReport"
PAGINATED_REPORT = "PaginatedReport"


def _require_guid(value: str, label: str) -> str:
    try:
        uuid.UUID(value)
    except ValueError:
        raise ValidationError(f"Invalid {label} format")
    return value


class PowerBIService:

    def __init__(self, client: Optional[PowerBIClient] = None) -> None:
        self.client = client or powerbi_client

    def _require_configured(self) -> None:
        if not self.client.is_configured:
            raise ValidationError(NOT_CONFIGURED)

    async def test_connection(self) -> bool:
        """True when the service principal can list its workspaces."""
        if not self.client.is_configured:
            return False
        try:
            await self.client.list_groups()
        except RelayError as exc:
            logger.warning("Power BI connection test failed: %s", exc.message)
            return False
        return True

    async def get_config(self) -> PowerBIConfigResponse:
        """Configuration status; the ids are only echoed when fully configured."""
        if not self.client.is_configured:
            return PowerBIConfigResponse(is_configured=False, error_message=NOT_CONFIGURED)

        connected = await self.test_connection()
        return PowerBIConfigResponse(
            is_configured=True,
            tenant_id=self.client.tenant_id,
            client_id=self.client.client_id,
            is_connected=connected,
            error_message=None if connected else (
                "Configuration is present but connection test failed. Check credentials."
            ),
        )

    async def list_workspaces(self) -> PowerBIWorkspaceListResponse:
        """Workspaces the service principal belongs to, by name, with report counts."""
        self._require_configured()
        workspaces = []
        for group in await self.client.list_groups():
            reports = await self.client.list_reports(group["id"])
            kinds = [r.get("reportType") or INTERACTIVE_REPORT for r in reports]
            workspaces.append(
                PowerBIWorkspace(
                    workspace_id=group["id"],
                    workspace_name=group.get("name", ""),
                    report_count=kinds.count(INTERACTIVE_REPORT),
                    paginated_report_count=kinds.count(PAGINATED_REPORT),
                )
            )
        logger.info("Listed %s Power BI workspaces", len(workspaces))
        return PowerBIWorkspaceListResponse(
            workspaces=sorted(workspaces, key=lambda w: w.workspace_name)
        )

    async def list_workspace_reports(
        self, db: AsyncSession, workspace_id: str
    ) -> PowerBIReportListResponse:
        """Reports of one workspace, flagged when a portal report already points at them.

        Inactive portal reports count as imported too.
        """
        _require_guid(workspace_id, "workspace ID")
        self._require_configured()
        upstream = await self.client.list_reports(workspace_id)

        rows = await db.execute(
            select(Report.id, Report.powerbi_report_id).where(
                Report.powerbi_report_id.is_not(None)
            )
        )
        imported = {pbi_id.lower(): report_id for report_id, pbi_id in rows.all()}

        reports = []
        for item in upstream:
            existing = imported.get(str(item["id"]).lower())
            reports.append(
                PowerBIReport(
                    report_id=item["id"],
                    report_name=item.get("name", ""),
                    dataset_id=item.get("datasetId") or "",
                    embed_url=item.get("embedUrl"),
                    report_type=item.get("reportType") or INTERACTIVE_REPORT,
                    already_imported=existing is not None,
                    existing_report_id=existing,
                )
            )
        logger.info("Listed %s reports in Power BI workspace %s", len(reports), workspace_id)
        return PowerBIReportListResponse(reports=sorted(reports, key=lambda r: r.report_name))

    async def get_embed_info(self, workspace_id: str, report_id: str) -> PowerBIEmbedInfo:
        """Embed URL plus a view-only embed token for one report."""
        _require_guid(workspace_id, "workspace ID")
        _require_guid(report_id, "report ID")
        self._require_configured()

        report = await self.client.get_report(workspace_id, report_id)
        token = await self.client.generate_view_token(workspace_id, report_id)
        logger.info(
            "Generated Power BI embed token | workspace=%s report=%s expires=%s",
            workspace_id, report_id, token.expiration,
        )
        return PowerBIEmbedInfo(
            embed_url=report.get("embedUrl"),
            embed_token=token.token,
            report_id=report_id,
            token_expiry=token.expiration,
        )


powerbi_service = PowerBIService()
