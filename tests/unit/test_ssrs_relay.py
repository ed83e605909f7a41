"""Tests for the SSRS relay: rendering and catalogue listing."""

from datetime import datetime
from unittest.mock import patch

import httpx
import pytest

from portal.core.exceptions import RelayError
from portal.services.report_relay import SSRSRelay, build_viewer_url
from portal.services.report_relay.ssrs import list_children_envelope, parse_catalog_items

_RealAsyncClient = httpx.AsyncClient


def _client_with(handler):
    """Patch target producing AsyncClients backed by *handler*."""

    def factory(**kwargs):
        return _RealAsyncClient(transport=httpx.MockTransport(handler), **kwargs)

    return patch("portal.services.report_relay.ssrs.httpx.AsyncClient", side_effect=factory)


@pytest.mark.unit
class TestBuildViewerUrl:

    def test_embeds_path_and_render_flags(self):
        url = build_viewer_url("/Finance/Monthly", "http://ssrs/ReportServer/")

        assert url == (
            "http://ssrs/ReportServer/Pages/ReportViewer.aspx?/Finance/Monthly"
            "&rs:Command=Render&rs:Embed=true"
        )

    def test_adds_missing_leading_slash(self):
        url = build_viewer_url("Finance/Monthly", "http://ssrs/ReportServer")

        assert "ReportViewer.aspx?/Finance/Monthly&" in url

    def test_quotes_parameters(self):
        url = build_viewer_url("/R", "http://ssrs", {"Region": "North East"})

        assert url.endswith("&Region=North%20East")


@pytest.mark.unit
class TestSSRSRelay:

    @pytest.mark.asyncio
    async def test_returns_upstream_bytes_and_content_type(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            return httpx.Response(200, content=b"<html>report</html>", headers={"content-type": "text/html; charset=utf-8"})

        relay = SSRSRelay(server_url="http://ssrs/ReportServer", username="", password="")
        with _client_with(handler):
            rendered = await relay.render("/Finance/Monthly")

        assert rendered.content == b"<html>report</html>"
        assert rendered.content_type == "text/html; charset=utf-8"
        assert "rs:Command=Render" in seen["url"]

    @pytest.mark.asyncio
    async def test_report_server_overrides_default(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["host"] = request.url.host
            return httpx.Response(200, content=b"ok")

        relay = SSRSRelay(server_url="http://default-ssrs", username="", password="")
        with _client_with(handler):
            await relay.render("/R", report_server="http://other-ssrs")

        assert seen["host"] == "other-ssrs"

    @pytest.mark.asyncio
    async def test_sends_basic_auth_when_configured(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, content=b"ok")

        relay = SSRSRelay(server_url="http://ssrs", username="svc", password="pw")
        with _client_with(handler):
            await relay.render("/R")

        assert seen["auth"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_missing_server_raises(self):
        relay = SSRSRelay(server_url="", username="", password="")

        with pytest.raises(RelayError, match="not configured"):
            await relay.render("/R")

    @pytest.mark.asyncio
    async def test_upstream_error_status_raises(self):
        relay = SSRSRelay(server_url="http://ssrs", username="", password="")

        with _client_with(lambda request: httpx.Response(500)):
            with pytest.raises(RelayError, match="status 500") as exc_info:
                await relay.render("/R")

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_connection_failure_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        relay = SSRSRelay(server_url="http://ssrs", username="", password="")
        with _client_with(handler):
            with pytest.raises(RelayError, match="Failed to connect"):
                await relay.render("/R")


LIST_CHILDREN_RESPONSE = """<?xml version="1.0" encoding="utf-8"?>
<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">
  <soap:Body>
    <ListChildrenResponse xmlns="http://schemas.microsoft.com/sqlserver/reporting/2010/03/01/ReportServer">
      <CatalogItems>
        <CatalogItem>
          <Name>Monthly</Name>
          <Path>/Finance/Monthly</Path>
          <TypeName>Report</TypeName>
          <Description>Month end</Description>
          <ModifiedDate>2026-03-01T08:30:00</ModifiedDate>
          <Hidden>false</Hidden>
        </CatalogItem>
        <CatalogItem>
          <Name>Archive</Name>
          <Path>/Finance/Archive</Path>
          <TypeName>Folder</TypeName>
        </CatalogItem>
        <CatalogItem>
          <Name>Scratch</Name>
          <Path>/Finance/Scratch</Path>
          <TypeName>Report</TypeName>
          <Hidden>true</Hidden>
        </CatalogItem>
      </CatalogItems>
    </ListChildrenResponse>
  </soap:Body>
</soap:Envelope>"""


@pytest.mark.unit
class TestCatalogParsing:

    def test_envelope_escapes_item_path(self):
        envelope = list_children_envelope("/R&D <new>")

        assert "<ItemPath>/R&amp;D &lt;new&gt;</ItemPath>" in envelope
        assert "<Recursive>false</Recursive>" in envelope

    def test_reads_catalog_items(self):
        items = parse_catalog_items(LIST_CHILDREN_RESPONSE)

        assert [(i.name, i.type_name, i.hidden) for i in items] == [
            ("Monthly", "Report", False),
            ("Archive", "Folder", False),
            ("Scratch", "Report", True),
        ]
        assert items[0].description == "Month end"
        assert items[0].modified_date == datetime(2026, 3, 1, 8, 30)
        assert items[1].modified_date is None

    def test_malformed_body_raises(self):
        with pytest.raises(RelayError, match="parse"):
            parse_catalog_items("<html>login page")


@pytest.mark.unit
class TestCatalogListing:

    @pytest.mark.asyncio
    async def test_list_children_posts_soap_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["action"] = request.headers.get("soapaction")
            seen["body"] = request.content.decode()
            return httpx.Response(200, text=LIST_CHILDREN_RESPONSE)

        relay = SSRSRelay(server_url="http://ssrs/ReportServer/", username="", password="")
        with _client_with(handler):
            items = await relay.list_children("/Finance")

        assert seen["method"] == "POST"
        assert seen["url"] == "http://ssrs/ReportServer/ReportService2010.asmx"
        assert seen["action"].endswith("/ReportServer/ListChildren")
        assert "<ItemPath>/Finance</ItemPath>" in seen["body"]
        assert len(items) == 3

    @pytest.mark.asyncio
    async def test_list_children_error_status_raises(self):
        relay = SSRSRelay(server_url="http://ssrs", username="", password="")

        with _client_with(lambda request: httpx.Response(401)):
            with pytest.raises(RelayError, match="status 401"):
                await relay.list_children("/")

    @pytest.mark.asyncio
    async def test_ping(self):
        relay = SSRSRelay(server_url="http://ssrs", username="", password="")

        with _client_with(lambda request: httpx.Response(200, text="wsdl")):
            assert await relay.ping() is True
        with _client_with(lambda request: httpx.Response(503)):
            assert await relay.ping() is False
        assert await SSRSRelay(server_url="", username="", password="").ping() is False
