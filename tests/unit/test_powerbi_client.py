"""Tests for the Power BI REST client."""

import json
from datetime import datetime, timezone
from unittest.mock import patch

import httpx
import pytest

from portal.core.exceptions import RelayError
from portal.services.report_relay.powerbi import POWERBI_SCOPE, PowerBIClient, is_placeholder

_RealAsyncClient = httpx.AsyncClient

WORKSPACE = "9a0c3c4e-6f3b-4f1e-9a51-3b8f6f0c2d11"
REPORT = "5d2e8f40-1a3b-4c6d-8e9f-0a1b2c3d4e5f"


def _client_with(handler):
    def factory(**kwargs):
        return _RealAsyncClient(transport=httpx.MockTransport(handler), **kwargs)

    return patch("portal.services.report_relay.powerbi.httpx.AsyncClient", side_effect=factory)


def _client(**overrides) -> PowerBIClient:
    values = {
        "tenant_id": "tenant-1",
        "client_id": "client-1",
        "client_secret": "s3cret",
        "api_url": "https://api.powerbi.test",
        "authority_url": "https://login.test",
    }
    values.update(overrides)
    return PowerBIClient(**values)


class FakePowerBI:
    """Token endpoint plus a handful of REST routes, recording every request."""

    def __init__(self, routes: dict):
        self.routes = routes
        self.requests: list[httpx.Request] = []
        self.token_calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "login.test":
            self.token_calls += 1
            return httpx.Response(200, json={"access_token": "aad-token", "expires_in": 3600})
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"error": "not found"})
        status, body = self.routes[key]
        return httpx.Response(status, json=body)


@pytest.mark.unit
class TestConfiguration:

    def test_placeholders_count_as_missing(self):
        assert is_placeholder("")
        assert is_placeholder(None)
        assert is_placeholder("YOUR_TENANT_ID")
        assert not is_placeholder("tenant-1")

    def test_is_configured(self):
        assert _client().is_configured
        assert not _client(client_secret="YOUR_SECRET").is_configured
        assert not _client(tenant_id="").is_configured


@pytest.mark.unit
class TestPowerBIClient:

    @pytest.mark.asyncio
    async def test_token_request_uses_client_credentials(self):
        fake = FakePowerBI({("GET", "/v1.0/myorg/groups"): (200, {"value": []})})

        with _client_with(fake):
            await _client().list_groups()

        token_request = fake.requests[0]
        assert str(token_request.url) == "https://login.test/tenant-1/oauth2/v2.0/token"
        form = dict(httpx.QueryParams(token_request.content.decode()))
        assert form["grant_type"] == "client_credentials"
        assert form["scope"] == POWERBI_SCOPE
        assert fake.requests[1].headers["authorization"] == "Bearer aad-token"

    @pytest.mark.asyncio
    async def test_token_is_cached_between_calls(self):
        fake = FakePowerBI({("GET", "/v1.0/myorg/groups"): (200, {"value": [{"id": WORKSPACE}]})})
        client = _client()

        with _client_with(fake):
            await client.list_groups()
            groups = await client.list_groups()

        assert groups == [{"id": WORKSPACE}]
        assert fake.token_calls == 1

    @pytest.mark.asyncio
    async def test_generate_view_token(self):
        fake = FakePowerBI(
            {
                ("POST", f"/v1.0/myorg/groups/{WORKSPACE}/reports/{REPORT}/GenerateToken"): (
                    200,
                    {"token": "embed-token", "expiration": "2026-10-19T12:00:00Z"},
                ),
            }
        )

        with _client_with(fake):
            token = await _client().generate_view_token(WORKSPACE, REPORT)

        assert token.token == "embed-token"
        assert token.expiration == datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
        assert json.loads(fake.requests[-1].content) == {"accessLevel": "View", "allowSaveAs": False}

    @pytest.mark.asyncio
    async def test_api_error_raises_relay_error(self):
        fake = FakePowerBI({("GET", "/v1.0/myorg/groups"): (403, {"error": "forbidden"})})

        with _client_with(fake):
            with pytest.raises(RelayError, match="status 403") as exc_info:
                await _client().list_groups()

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_rejected_credentials_raise_relay_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "invalid_client"})

        with _client_with(handler):
            with pytest.raises(RelayError, match="authentication failed"):
                await _client().list_groups()

    @pytest.mark.asyncio
    async def test_unconfigured_client_never_calls_out(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        with _client_with(handler):
            with pytest.raises(RelayError, match="not configured"):
                await _client(client_id="").list_groups()
