"""FunnelSync — Google Ads API Client.

Thin async wrapper over the REST `googleAds:searchStream` method. The
bearer token is supplied by the caller; the developer token comes from
settings. No retries: errors are classified and raised.
"""

from typing import Any, Dict, List, Optional

import httpx

from funnelsync.config import settings
from funnelsync.core.errors import (
    ConnectorError,
    CredentialError,
    InvalidDateRange,
    RateLimited,
)
from funnelsync.core.logging import get_logger

logger = get_logger("google.client")

GOOGLE_ADS_BASE = f"{settings.google_ads_base_url}/{settings.google_ads_api_version}"

CREDENTIAL_STATUSES = {"UNAUTHENTICATED", "PERMISSION_DENIED"}


def normalize_customer_id(customer_id: str) -> str:
    """Google wants customer ids without dashes."""
    return customer_id.replace("-", "").strip()


def _error_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    # searchStream wraps errors in a one-element array
    if isinstance(body, list):
        body = body[0] if body else {}
    return body.get("error", {}) if isinstance(body, dict) else {}


def classify_error(response: httpx.Response) -> Exception:
    """Map a failed Google Ads response onto the engine's error taxonomy."""
    error = _error_body(response)
    message = error.get("message") or f"HTTP {response.status_code}"
    status = error.get("status", "")
    code = response.status_code

    if status in CREDENTIAL_STATUSES or code in (401, 403):
        return CredentialError(message, code, status)
    if status == "RESOURCE_EXHAUSTED" or code == 429:
        retry_after = response.headers.get("retry-after")
        return RateLimited(message, float(retry_after) if retry_after else None)
    if status == "INVALID_ARGUMENT" and "date" in str(error).lower():
        return InvalidDateRange(message)
    return ConnectorError(message, code, status)


class GoogleAdsClient:
    """Async HTTP client for the Google Ads REST API."""

    def __init__(
        self,
        access_token: str,
        developer_token: str | None = None,
        login_customer_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.developer_token = developer_token or settings.google_ads_developer_token
        self.login_customer_id = (
            normalize_customer_id(login_customer_id) if login_customer_id else None
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=settings.http_timeout_seconds, transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "developer-token": self.developer_token,
            "Content-Type": "application/json",
        }
        if self.login_customer_id:
            headers["login-customer-id"] = self.login_customer_id
        return headers

    async def search_stream(self, customer_id: str, query: str) -> List[Dict[str, Any]]:
        """Run a GAQL query and return the flattened result rows."""
        cid = normalize_customer_id(customer_id)
        url = f"{GOOGLE_ADS_BASE}/customers/{cid}/googleAds:searchStream"

        client = await self._get_client()
        try:
            resp = await client.post(url, headers=self._headers(), json={"query": query})
        except httpx.TimeoutException as e:
            raise ConnectorError(f"Google Ads request timed out: {e}") from e
        except httpx.RequestError as e:
            raise ConnectorError(f"Google Ads request failed: {e}") from e

        if resp.is_error:
            error = classify_error(resp)
            logger.warning(
                f"Google Ads API error: {error}",
                extra={"endpoint": url, "status_code": resp.status_code},
            )
            raise error

        try:
            batches = resp.json() or []
        except ValueError as e:
            raise ConnectorError(
                f"Google Ads returned a non-JSON body (HTTP {resp.status_code})",
                resp.status_code,
            ) from e

        rows: List[Dict[str, Any]] = []
        for batch in batches:
            rows.extend(batch.get("results", []))
        return rows
