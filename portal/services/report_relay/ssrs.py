"""SSRS relay.

Fetches the rendered viewer page for a report path from the report server
and hands the bytes back untouched; the portal never inspects the payload.
Admins can also browse the server's catalogue through the ReportService2010
SOAP endpoint (``ListChildren``).
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from urllib.parse import quote
from xml.sax.saxutils import escape

import httpx

from portal.config import settings
from portal.core.exceptions import RelayError

logger = logging.getLogger(__name__)

SOAP_SERVICE = "ReportService2010.asmx"
CATALOG_NAMESPACE = "http://schemas.microsoft.com/sqlserver/reporting/2010/03/01/ReportServer"
LIST_CHILDREN_ACTION = f"{CATALOG_NAMESPACE}/ListChildren"

_LIST_CHILDREN_ENVELOPE = """<?xml version="1.0" encoding="utf-8"?>
<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">
  <soap:Body>
    <ListChildren xmlns="{namespace}">
      <ItemPath>{path}</ItemPath>
      <Recursive>false</Recursive>
    </ListChildren>
  </soap:Body>
</soap:Envelope>"""


@dataclass
class RenderedReport:
    content: bytes
    content_type: str


@dataclass
class CatalogItem:
    """One entry of a report server folder."""

    name: str
    path: str
    type_name: str
    description: Optional[str] = None
    modified_date: Optional[datetime] = None
    hidden: bool = False


def list_children_envelope(folder_path: str) -> str:
    return _LIST_CHILDREN_ENVELOPE.format(namespace=CATALOG_NAMESPACE, path=escape(folder_path))


def _parse_modified(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def parse_catalog_items(xml_text: str) -> list[CatalogItem]:
    """Read every ``CatalogItem`` out of a ListChildren SOAP response.

    Raises:
        RelayError: the body is not well-formed XML.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise RelayError("Failed to parse SSRS response") from exc

    def text(element: ET.Element, tag: str) -> Optional[str]:
        child = element.find(f"{{{CATALOG_NAMESPACE}}}{tag}")
        return child.text if child is not None else None

    return [
        CatalogItem(
            name=text(element, "Name") or "",
            path=text(element, "Path") or "",
            type_name=text(element, "TypeName") or "",
            description=text(element, "Description"),
            modified_date=_parse_modified(text(element, "ModifiedDate")),
            hidden=(text(element, "Hidden") or "").lower() == "true",
        )
        for element in root.iter(f"{{{CATALOG_NAMESPACE}}}CatalogItem")
    ]


def build_viewer_url(
    report_path: str,
    server_url: str,
    parameters: Optional[dict[str, str]] = None,
) -> str:
    """URL of the SSRS ReportViewer page rendering *report_path* embedded."""
    path = report_path if report_path.startswith("/") else "/" + report_path
    url = f"{server_url.rstrip('/')}/Pages/ReportViewer.aspx?{path}&rs:Command=Render&rs:Embed=true"
    for key, value in (parameters or {}).items():
        url += f"&{quote(key, safe='')}={quote(str(value), safe='')}"
    return url


class SSRSRelay:
    """Thin httpx client for the report server."""

    def __init__(
        self,
        server_url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.server_url = server_url if server_url is not None else settings.SSRS_SERVER_URL
        self.username = username if username is not None else settings.SSRS_USERNAME
        self.password = password if password is not None else settings.SSRS_PASSWORD
        self.timeout = timeout if timeout is not None else settings.SSRS_TIMEOUT_SECONDS

    def _auth(self) -> Optional[httpx.BasicAuth]:
        if self.username and self.password:
            return httpx.BasicAuth(self.username, self.password)
        return None

    async def render(
        self,
        report_path: str,
        report_server: Optional[str] = None,
        parameters: Optional[dict[str, str]] = None,
    ) -> RenderedReport:
        """Render *report_path* and return the upstream bytes and content type.

        Raises:
            RelayError: no server is configured, the server is unreachable,
                or it answered with a non-2xx status.
        """
        server_url = report_server or self.server_url
        if not server_url:
            raise RelayError("SSRS server URL not configured")

        url = build_viewer_url(report_path, server_url, parameters)
        logger.info("Rendering SSRS report: path=%s server=%s", report_path, server_url)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, auth=self._auth()) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "SSRS render failed: path=%s status=%s", report_path, exc.response.status_code
            )
            raise RelayError(f"SSRS returned status {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.error("SSRS render error: path=%s error=%s", report_path, exc)
            raise RelayError("Failed to connect to SSRS server") from exc

        return RenderedReport(
            content=response.content,
            content_type=response.headers.get("content-type", "text/html"),
        )

    async def list_children(self, folder_path: str) -> list[CatalogItem]:
        """Direct children of *folder_path* on the configured server.

        Raises:
            RelayError: no server is configured, the server is unreachable,
                it answered with a non-2xx status, or the body is not XML.
        """
        if not self.server_url:
            raise RelayError("SSRS server URL not configured")

        url = f"{self.server_url.rstrip('/')}/{SOAP_SERVICE}"
        logger.info("Listing SSRS catalogue: path=%s server=%s", folder_path, self.server_url)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, auth=self._auth()) as client:
                response = await client.post(
                    url,
                    content=list_children_envelope(folder_path).encode("utf-8"),
                    headers={
                        "Content-Type": "text/xml; charset=utf-8",
                        "SOAPAction": LIST_CHILDREN_ACTION,
                    },
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "SSRS ListChildren failed: path=%s status=%s",
                folder_path, exc.response.status_code,
            )
            raise RelayError(
                f"SSRS connection failed: status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("SSRS ListChildren error: path=%s error=%s", folder_path, exc)
            raise RelayError("Failed to connect to SSRS server") from exc

        return parse_catalog_items(response.text)

    async def ping(self) -> bool:
        """True when the SOAP endpoint of the configured server answers 2xx."""
        if not self.server_url:
            return False
        try:
            async with httpx.AsyncClient(timeout=self.timeout, auth=self._auth()) as client:
                response = await client.get(f"{self.server_url.rstrip('/')}/{SOAP_SERVICE}")
        except httpx.HTTPError as exc:
            logger.warning("SSRS connection test failed: %s", exc)
            return False
        return response.is_success


ssrs_relay = SSRSRelay()
