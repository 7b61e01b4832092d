"""FunnelSync — Meta API Client.

Handles authentication parameters, error classification and pagination.
Retries are the sync orchestrator's job; this client raises on the first
failure.
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

logger = get_logger("meta.client")

META_BASE = f"{settings.meta_base_url}/{settings.meta_api_version}"
MAX_PAGES = 20

# Graph API error codes
OAUTH_ERROR_CODES = {102, 190}
PERMISSION_ERROR_CODES = {10, 200, 294}
THROTTLE_ERROR_CODES = {4, 17, 32, 613, 80000, 80003, 80004, 80014}
INVALID_PARAMETER_CODE = 100


def _error_body(response: httpx.Response) -> Dict[str, Any]:
    if response.headers.get("content-type", "").startswith(
        ("application/json", "text/javascript")
    ):
        try:
            return response.json().get("error", {}) or {}
        except ValueError:
            return {}
    return {}


def classify_error(response: httpx.Response) -> Exception:
    """Map a failed Graph API response onto the engine's error taxonomy."""
    error = _error_body(response)
    message = error.get("message") or f"HTTP {response.status_code}"
    code = error.get("code", 0) or 0
    status = response.status_code

    if code in OAUTH_ERROR_CODES or code in PERMISSION_ERROR_CODES:
        return CredentialError(message, status, code)
    if code in THROTTLE_ERROR_CODES or status == 429:
        retry_after = response.headers.get("retry-after")
        return RateLimited(message, float(retry_after) if retry_after else None)
    # Graph codes win over the HTTP status; throttling can arrive as a 403
    if status in (401, 403):
        return CredentialError(message, status, code)
    if code == INVALID_PARAMETER_CODE and "time" in message.lower():
        return InvalidDateRange(message)
    return ConnectorError(message, status, code)


class MetaClient:
    """Async HTTP client for the Meta Marketing API.

    The access token is given per client instance; nothing is read from
    process-wide settings.
    """

    def __init__(
        self,
        access_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
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

    # ── Core Request Method ──

    async def _request(
        self,
        method: str,
        url: str,
        params: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Make a single request; raise a classified error on failure."""
        params = dict(params or {})
        if "access_token=" not in url:
            params["access_token"] = self.access_token

        client = await self._get_client()
        try:
            resp = await client.request(method, url, params=params)
        except httpx.TimeoutException as e:
            raise ConnectorError(f"Meta request timed out: {e}") from e
        except httpx.RequestError as e:
            raise ConnectorError(f"Meta request failed: {e}") from e

        if resp.is_error:
            error = classify_error(resp)
            logger.warning(
                f"Meta API error: {error}",
                extra={"endpoint": url.split("?")[0], "status_code": resp.status_code},
            )
            raise error
        try:
            return resp.json()
        except ValueError as e:
            raise ConnectorError(
                f"Meta returned a non-JSON body (HTTP {resp.status_code})", resp.status_code
            ) from e

    # ── Pagination ──

    async def paginated_get(
        self,
        url: str,
        params: Dict[str, Any] | None = None,
        max_pages: int = MAX_PAGES,
    ) -> List[Dict[str, Any]]:
        """Fetch all pages of a paginated endpoint, up to max_pages calls."""
        all_data: List[Dict[str, Any]] = []
        current_url = url

        for page in range(max_pages):
            result = await self._request(
                "GET", current_url, params if page == 0 else None
            )
            all_data.extend(result.get("data", []))

            next_url = result.get("paging", {}).get("next")
            if not next_url:
                break
            current_url = next_url
        else:
            logger.warning(f"Stopped paginating {url} after {max_pages} pages")

        logger.info(f"Fetched {len(all_data)} records from {url}")
        return all_data
