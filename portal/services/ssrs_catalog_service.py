"""Admin view of the SSRS report server: folder browsing and reachability."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from portal.config import settings
from portal.core.exceptions import RelayError
from portal.schemas.report_server import (
    SSRSCatalogItem,
    SSRSConfigResponse,
    SSRSFolderListResponse,
)
from portal.services.report_relay.ssrs import CatalogItem, SSRSRelay, ssrs_relay

logger = logging.getLogger(__name__)

FOLDER_TYPE = "Folder"
REPORT_TYPE = "Report"


def _sorted_items(items: list[CatalogItem], type_name: str) -> list[SSRSCatalogItem]:
    picked = [item for item in items if item.type_name == type_name]
    return [
        SSRSCatalogItem(
            name=item.name,
            path=item.path,
            type_name=item.type_name,
            description=item.description,
            modified_date=item.modified_date,
        )
        for item in sorted(picked, key=lambda i: i.name)
    ]


class SSRSCatalogService:
    """Folder listings are cached per path for ``SSRS_CATALOG_CACHE_SECONDS``."""

    def __init__(self, relay: Optional[SSRSRelay] = None, cache_seconds: Optional[int] = None):
        self.relay = relay or ssrs_relay
        seconds = cache_seconds if cache_seconds is not None else settings.SSRS_CATALOG_CACHE_SECONDS
        self.cache_ttl = timedelta(seconds=seconds)
        self._cache: dict[str, tuple[datetime, SSRSFolderListResponse]] = {}

    @staticmethod
    def effective_path(folder_path: Optional[str]) -> str:
        """``/`` (or nothing) stands for the configured catalogue root."""
        if not folder_path or folder_path == "/":
            return settings.SSRS_REPORT_SERVER_PATH or "/"
        return folder_path

    async def browse(self, folder_path: Optional[str] = "/") -> SSRSFolderListResponse:
        """Visible sub-folders and reports of one folder, each sorted by name.

        Hidden items and other item types (data sources, datasets) are left
        out. Upstream failures come back as ``success=False`` and are not
        cached.
        """
        path = self.effective_path(folder_path)
        now = datetime.now(tz=timezone.utc)
        cached = self._cache.get(path)
        if cached is not None and now - cached[0] < self.cache_ttl:
            return cached[1]

        try:
            items = await self.relay.list_children(path)
        except RelayError as exc:
            return SSRSFolderListResponse(current_path=path, success=False, error_message=exc.message)

        visible = [item for item in items if not item.hidden]
        listing = SSRSFolderListResponse(
            current_path=path,
            folders=_sorted_items(visible, FOLDER_TYPE),
            reports=_sorted_items(visible, REPORT_TYPE),
        )
        self._cache[path] = (now, listing)
        logger.debug(
            "SSRS folder listed | path=%s folders=%s reports=%s",
            path, len(listing.folders), len(listing.reports),
        )
        return listing

    def clear_cache(self) -> None:
        self._cache.clear()

    async def test_connection(self) -> bool:
        return await self.relay.ping()

    async def get_config(self) -> SSRSConfigResponse:
        available = await self.relay.ping()
        return SSRSConfigResponse(
            server_url=self.relay.server_url or "",
            is_available=available,
            error_message=None if available else "SSRS server is not reachable",
        )


ssrs_catalog_service = SSRSCatalogService()
