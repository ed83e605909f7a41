"""Power BI REST client acting as the portal's service principal.

Client-credentials tokens from Entra are cached in-process until five minutes
before they expire. Every upstream failure surfaces as ``RelayError``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx

from portal.config import settings
from portal.core.exceptions import RelayError

logger = logging.getLogger(__name__)

POWERBI_SCOPE = "https://analysis.windows.net/powerbi/api/.default"

# Refresh this long before the token's own expiry
_TOKEN_MARGIN = timedelta(minutes=5)


@dataclass
class EmbedToken:
    token: str
    expiration: Optional[datetime] = None


def _parse_expiration(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def is_placeholder(value: Optional[str]) -> bool:
    """Empty, or still the ``YOUR_...`` value from the sample configuration."""
    return not value or value.startswith("YOUR_")


class PowerBIClient:
    """Thin httpx client for the Power BI REST API (``/v1.0/myorg``)."""

    def __init__(
        self,
        tenant_id: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        api_url: Optional[str] = None,
        authority_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.tenant_id = tenant_id if tenant_id is not None else settings.POWERBI_TENANT_ID
        self.client_id = client_id if client_id is not None else settings.POWERBI_CLIENT_ID
        self.client_secret = (
            client_secret if client_secret is not None else settings.POWERBI_CLIENT_SECRET
        )
        self.api_url = (api_url or settings.POWERBI_API_URL).rstrip("/")
        self.authority_url = (authority_url or settings.POWERBI_AUTHORITY_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.POWERBI_TIMEOUT_SECONDS
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None

    @property
    def is_configured(self) -> bool:
        return not any(
            is_placeholder(v) for v in (self.tenant_id, self.client_id, self.client_secret)
        )

    @property
    def token_url(self) -> str:
        return f"{self.authority_url}/{self.tenant_id}/oauth2/v2.0/token"

    # ------------------------------------------------------------------
    # Token handling
    # ------------------------------------------------------------------

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        now = datetime.now(tz=timezone.utc)
        if (
            self._token is not None
            and self._token_expires_at is not None
            and now < self._token_expires_at - _TOKEN_MARGIN
        ):
            return self._token

        if not self.is_configured:
            raise RelayError("Power BI service principal is not configured")

        logger.info("Acquiring Power BI access token for client %s", self.client_id)
        response = await client.post(
            self.token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "scope": POWERBI_SCOPE,
            },
        )
        if response.is_error:
            logger.error(
                "Power BI token request failed: status=%s body=%.200s",
                response.status_code, response.text,
            )
            raise RelayError(f"Power BI authentication failed: status {response.status_code}")

        payload = response.json()
        self._token = payload["access_token"]
        self._token_expires_at = now + timedelta(seconds=int(payload.get("expires_in", 3600)))
        return self._token

    def clear_token(self) -> None:
        self._token = None
        self._token_expires_at = None

    # ------------------------------------------------------------------
    # REST calls
    # ------------------------------------------------------------------

    async def _call(self, method: str, path: str, json: Optional[dict] = None) -> Any:
        url = f"{self.api_url}/v1.0/myorg{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token = await self._access_token(client)
                response = await client.request(
                    method, url, json=json, headers={"Authorization": f"Bearer {token}"}
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Power BI API error: %s %s status=%s body=%.200s",
                method, path, exc.response.status_code, exc.response.text,
            )
            if exc.response.status_code == 401:
                self.clear_token()
            raise RelayError(f"Power BI API error: status {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.error("Power BI API unreachable: %s %s error=%s", method, path, exc)
            raise RelayError("Failed to connect to Power BI") from exc
        return response.json()

    async def list_groups(self) -> list[dict]:
        return (await self._call("GET", "/groups")).get("value", [])

    async def list_reports(self, group_id: str) -> list[dict]:
        return (await self._call("GET", f"/groups/{group_id}/reports")).get("value", [])

    async def get_report(self, group_id: str, report_id: str) -> dict:
        return await self._call("GET", f"/groups/{group_id}/reports/{report_id}")

    async def generate_view_token(self, group_id: str, report_id: str) -> EmbedToken:
        """View-only embed token for one report; Save As is not allowed."""
        payload = await self._call(
            "POST",
            f"/groups/{group_id}/reports/{report_id}/GenerateToken",
            json={"accessLevel": "View", "allowSaveAs": False},
        )
        return EmbedToken(
            token=payload["token"], expiration=_parse_expiration(payload.get("expiration"))
        )


powerbi_client = PowerBIClient()
