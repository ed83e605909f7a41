"""Clients for the report servers: SSRS rendering and catalogue, Power BI REST."""

from portal.services.report_relay.powerbi import EmbedToken, PowerBIClient, powerbi_client
from portal.services.report_relay.ssrs import (
    CatalogItem,
    RenderedReport,
    SSRSRelay,
    build_viewer_url,
    ssrs_relay,
)

__all__ = [
    "CatalogItem",
    "EmbedToken",
    "PowerBIClient",
    "RenderedReport",
    "SSRSRelay",
    "build_viewer_url",
    "powerbi_client",
    "ssrs_relay",
]
