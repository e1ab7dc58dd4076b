"""
Plaud cloud API client.

Authenticated async client for the recording-capture service:
- Paginated recording listing (newest first)
- Temporary download URL issuance and audio download
- Remote filename updates
- Device listing / connection test

Requests are retried in a bounded loop (MAX_RETRIES, exponential backoff from
INITIAL_RETRY_DELAY) on transport errors, 5xx responses and 429 responses,
honouring Retry-After. Other 4xx responses fail immediately.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlparse

import httpx

from plaud.models import (
    PlaudDeviceListResponse,
    PlaudRecordingsResponse,
    PlaudTempUrlResponse,
    PlaudUpdateFilenameResponse,
)
from plaud.plaud_config import (
    ALLOWED_PLAUD_HOSTS,
    DEFAULT_PLAUD_API_BASE,
    DOWNLOAD_TIMEOUT,
    INITIAL_RETRY_DELAY,
    MAX_RETRIES,
    REQUEST_TIMEOUT,
)
from utils.encryption import decrypt_secret
from utils.errors import UpstreamError

logger = logging.getLogger(__name__)


class PlaudApiError(UpstreamError):
    """Plaud API request failed (after retries where applicable)."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


def validate_api_base(api_base: str) -> str:
    """
    Ensure api_base is an https URL on a known Plaud host.

    Raises:
        ValueError: If the URL points anywhere else
    """
    parsed = urlparse(api_base)
    if parsed.scheme != "https" or parsed.hostname not in ALLOWED_PLAUD_HOSTS:
        raise ValueError(f"Unsupported Plaud API base: {api_base}")
    return api_base.rstrip("/")


def _retry_after_seconds(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    msg = body.get("msg") if isinstance(body, dict) else None
    return f"Plaud API error ({response.status_code}): {msg or response.reason_phrase}"


class PlaudClient:
    """Async client for the Plaud cloud API."""

    def __init__(
        self,
        bearer_token: str,
        api_base: str = DEFAULT_PLAUD_API_BASE,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.bearer_token = bearer_token
        self.api_base = api_base.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
        self._sleep = sleep

    async def __aenter__(self) -> "PlaudClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.bearer_token}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        url = f"{self.api_base}{endpoint}"

        for attempt in range(MAX_RETRIES + 1):
            backoff = INITIAL_RETRY_DELAY * (2 ** attempt)
            can_retry = attempt < MAX_RETRIES

            try:
                response = await self._client.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    headers=self._headers,
                )
            except httpx.TransportError as exc:
                if not can_retry:
                    raise PlaudApiError(f"Failed to make request to Plaud API: {exc}") from exc
                logger.warning(
                    "Plaud %s %s transport error (attempt %d/%d): %s",
                    method, endpoint, attempt + 1, MAX_RETRIES + 1, exc,
                )
                await self._sleep(backoff)
                continue

            status = response.status_code

            if status == 429 and can_retry:
                retry_after = _retry_after_seconds(response)
                delay = retry_after if retry_after is not None else backoff
                logger.warning("Plaud rate limit on %s, retrying in %.1fs", endpoint, delay)
                await self._sleep(delay)
                continue

            if 500 <= status < 600 and can_retry:
                logger.warning(
                    "Plaud %s %s returned %d (attempt %d/%d)",
                    method, endpoint, status, attempt + 1, MAX_RETRIES + 1,
                )
                await self._sleep(backoff)
                continue

            if not response.is_success:
                raise PlaudApiError(_error_message(response), status=status)

            return response.json()

        # Loop always returns or raises on the last attempt
        raise PlaudApiError("Plaud API retries exhausted")

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def list_devices(self) -> PlaudDeviceListResponse:
        data = await self._request("GET", "/device/list")
        return PlaudDeviceListResponse.model_validate(data)

    async def get_recordings(
        self,
        skip: int = 0,
        limit: int = 99999,
        is_trash: int = 0,
        sort_by: str = "edit_time",
        is_desc: bool = True,
    ) -> PlaudRecordingsResponse:
        """
        List recordings.

        Args:
            skip: Number of recordings to skip
            limit: Maximum number of recordings to return
            is_trash: 0 = active, 1 = trash
            sort_by: Field to sort by
            is_desc: Sort newest first
        """
        params = {
            "skip": skip,
            "limit": limit,
            "is_trash": is_trash,
            "sort_by": sort_by,
            "is_desc": "true" if is_desc else "false",
        }
        data = await self._request("GET", "/file/simple/web", params=params)
        return PlaudRecordingsResponse.model_validate(data)

    async def get_temp_url(self, file_id: str, is_opus: bool = True) -> PlaudTempUrlResponse:
        data = await self._request(
            "GET",
            f"/file/temp-url/{file_id}",
            params={"is_opus": "1" if is_opus else "0"},
        )
        return PlaudTempUrlResponse.model_validate(data)

    async def download_recording(self, file_id: str, prefer_opus: bool = True) -> bytes:
        """Download a recording's audio via its temporary URL."""
        temp = await self.get_temp_url(file_id, prefer_opus)
        download_url = temp.temp_url_opus if prefer_opus and temp.temp_url_opus else temp.temp_url

        try:
            # Temp URLs are pre-signed, no auth header
            response = await self._client.get(download_url, timeout=DOWNLOAD_TIMEOUT)
        except httpx.HTTPError as exc:
            raise PlaudApiError(f"Failed to download recording: {exc}") from exc
        if not response.is_success:
            raise PlaudApiError(
                f"Failed to download recording: {response.reason_phrase}",
                status=response.status_code,
            )
        logger.debug("Downloaded %s (%d bytes)", file_id, len(response.content))
        return response.content

    async def test_connection(self) -> bool:
        """True if the bearer token is accepted."""
        try:
            await self.list_devices()
            return True
        except PlaudApiError as exc:
            logger.info("Plaud connection test failed: %s", exc)
            return False

    async def update_filename(self, file_id: str, filename: str) -> PlaudUpdateFilenameResponse:
        data = await self._request("PATCH", f"/file/{file_id}", json_body={"filename": filename})
        return PlaudUpdateFilenameResponse.model_validate(data)


def create_plaud_client(
    encrypted_token: str,
    api_base: str = DEFAULT_PLAUD_API_BASE,
    http_client: Optional[httpx.AsyncClient] = None,
) -> PlaudClient:
    """Build a client from a stored (encrypted) bearer token."""
    return PlaudClient(
        decrypt_secret(encrypted_token),
        validate_api_base(api_base or DEFAULT_PLAUD_API_BASE),
        http_client=http_client,
    )
