"""
Shared httpx plumbing for JSON market data vendors.

Every transport error, timeout, non-2xx status or undecodable body is raised as
UpstreamUnavailableError. Request URLs are never included in messages because
vendors take the API key as a query parameter.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx

from src.domain.errors import UpstreamUnavailableError


class HttpJsonSource:
    """Base for adapters that GET JSON documents from a vendor REST API."""

    VENDOR = "vendor"

    def __init__(self, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None) -> None:
        """
        Args:
            timeout: Per-request timeout in seconds.
            client:  Optional shared AsyncClient (tests inject one backed by
                     httpx.MockTransport). A short-lived client is opened per
                     call when omitted.
        """
        self._timeout = timeout
        self._client = client

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                yield client

    async def _get_json(self, url: str, params: dict, symbol: str) -> Any:
        try:
            async with self._session() as client:
                response = await client.get(url, params=params, timeout=self._timeout)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as exc:
            raise UpstreamUnavailableError(
                f"{self.VENDOR} returned HTTP {exc.response.status_code} for {symbol}",
                symbol,
            ) from exc
        except httpx.TimeoutException as exc:
            raise UpstreamUnavailableError(
                f"{self.VENDOR} timed out for {symbol}", symbol
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(
                f"{self.VENDOR} request failed for {symbol}: {exc.__class__.__name__}",
                symbol,
            ) from exc
        except ValueError as exc:
            raise UpstreamUnavailableError(
                f"{self.VENDOR} returned an unreadable payload for {symbol}", symbol
            ) from exc
