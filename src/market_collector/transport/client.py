"""Async HTTP client for the Breeze REST API.

Every call resolves to a ``Success`` or ``Failure``; transport and HTTP
errors never propagate to the collectors.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from market_collector.config.models import ApiSettings, EndpointSettings
from market_collector.transport.result import Failure, RequestResult, Success

logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response) -> Any:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return body.get("Error") or body.get("message") or body
    return body


class BreezeClient:
    """Thin wrapper over ``httpx.AsyncClient`` returning tagged results."""

    def __init__(
        self,
        settings: ApiSettings,
        endpoints: Optional[EndpointSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self.endpoints = endpoints or EndpointSettings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.api_key:
            headers["X-API-Key"] = self.settings.api_key
        if self.settings.session_token:
            headers["Authorization"] = f"Bearer {self.settings.session_token}"
        return headers

    def _client_get(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url.rstrip("/"),
                timeout=self.settings.timeout_seconds,
                headers=self._headers(),
                transport=self._transport,
            )
        return self._client

    async def request(
        self,
        endpoint: str,
        params: Optional[Mapping[str, Any]] = None,
        method: str = "GET",
    ) -> RequestResult:
        client = self._client_get()
        method = method.upper()
        logger.debug("API request: %s %s", method, endpoint)

        try:
            if method == "GET":
                response = await client.request(method, endpoint, params=dict(params or {}))
            else:
                response = await client.request(method, endpoint, json=dict(params or {}))
        except httpx.HTTPError as e:
            logger.error("API error: %s %s: %s", method, endpoint, e)
            return Failure(error=str(e) or type(e).__name__, status=None)

        if response.is_success:
            logger.debug("API response: %s - %s", response.status_code, endpoint)
            try:
                data = response.json() if response.content else None
            except ValueError:
                data = response.text
            return Success(data=data, status=response.status_code)

        detail = _error_detail(response)
        logger.error(
            "API error: status=%s url=%s message=%s", response.status_code, endpoint, detail
        )
        return Failure(error=detail, status=response.status_code)

    async def test_connection(self) -> bool:
        """Hit the profile endpoint; True when the API answers successfully."""
        logger.info("Testing Breeze API connection...")
        result = await self.request(self.endpoints.profile)
        if result.ok:
            logger.info("API connection successful")
            return True
        logger.warning("API connection failed: %s", result.error)
        return False

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BreezeClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
