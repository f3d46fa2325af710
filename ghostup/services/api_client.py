"""HTTP adapter for the CDN API."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import AuthExpired, NetworkError, ServerRejected, UploadTimeout
from ..protocols import ICredentialStore

logger = logging.getLogger(__name__)


def error_detail(response: httpx.Response) -> Optional[str]:
    """Best effort extraction of the backend's error text."""
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:200] or None
    if isinstance(body, dict):
        detail = body.get("error") or body.get("message")
        return str(detail) if detail else None
    return None


class HTTPAPIClient:
    """
    HTTP client adapter for API calls.

    Implements IAPIClient protocol. Every request carries the bearer
    credential; responses use the {success, data, error} envelope.
    Requests are never retried here.
    """

    def __init__(
        self,
        base_url: str,
        credentials: ICredentialStore,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._credentials = credentials
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> Dict[str, str]:
        api_key = self._credentials.get_api_key()
        if not api_key:
            raise AuthExpired("No API key available. Please log in.")
        return {"Authorization": f"Bearer {api_key}"}

    async def post(self, endpoint: str, json: Dict) -> Any:
        """
        POST to the API and return the envelope's ``data`` member.

        Raises:
            AuthExpired: HTTP 401 or missing credential
            ServerRejected: Any other error status, non-JSON body or success=false
            UploadTimeout: Request timed out
            NetworkError: Connection level failure
        """
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")

        try:
            response = await self._client.post(endpoint, json=json, headers=self._headers())
        except httpx.TimeoutException as exc:
            raise UploadTimeout(f"Request to {endpoint} timed out") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Cannot reach API at {self._base_url}: {exc}") from exc

        logger.debug(f"POST {endpoint} -> {response.status_code}")

        if response.status_code == 401:
            raise AuthExpired(error_detail(response) or "Authentication failed", status_code=401)
        if response.status_code >= 400:
            detail = error_detail(response) or f"API error {response.status_code} on POST {endpoint}"
            raise ServerRejected(detail, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise ServerRejected(f"Invalid response from server on POST {endpoint}") from exc

        if not isinstance(body, dict):
            raise ServerRejected(f"Invalid response from server on POST {endpoint}")
        if not body.get("success"):
            raise ServerRejected(body.get("error") or f"Request to {endpoint} was refused")
        return body.get("data")
