"""HTTP client for the third-party thrift store API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from questhunt.errors import UpstreamError

logger = logging.getLogger(__name__)

STORES_PATH = "/external/stores"


class StoreClient:
    """
    Fetches the store list.

    Use as an async context manager, or pass an ``httpx.AsyncClient`` (tests
    pass one built on ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http = http
        self._owns_http = http is None

    async def __aenter__(self) -> StoreClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def fetch_stores(self) -> list[dict[str, Any]]:
        """
        GET the store list.

        Raises:
            UpstreamError: 504 on timeout, 500 on a non-2xx response or an
                unreadable body.
        """
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeout)
            self._owns_http = True

        url = f"{self.base_url}{STORES_PATH}"
        try:
            response = await self._http.get(url, timeout=self.timeout)
        except httpx.TimeoutException as e:
            logger.warning("Store API timed out after %.1fs", self.timeout)
            raise UpstreamError("Store API timed out", status_code=504) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Store API request failed: {e}") from e

        if not response.is_success:
            logger.warning("Store API returned %d", response.status_code)
            raise UpstreamError(
                f"Store API returned {response.status_code}",
                upstream_status=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError("Store API returned invalid JSON") from e

        if isinstance(payload, dict):
            payload = payload.get("stores", [])
        if not isinstance(payload, list):
            raise UpstreamError("Store API returned an unexpected payload")
        return [store for store in payload if isinstance(store, dict)]
