"""
Infrastructure adapter: Financial Modeling Prep → IPriceSource / IFundamentalsSource.

Endpoints:
  - /api/v3/historical-price-full/{symbol}: {"symbol", "historical": [{date, close, adjClose, ...}]}
  - /api/v3/income-statement/{symbol}?period=quarter: flat quarterly statements
    (revenue, grossProfit, grossProfitRatio, period, calendarYear, fillingDate).

FMP answers some failures (bad key, plan limits) with HTTP 200 and an
{"Error Message": ...} body; those are treated as upstream failures too.
"""

import logging
from datetime import date, timedelta
from typing import Any, Optional

import httpx

from src.domain.entities.stock_series import FundamentalRecord, PricePoint
from src.domain.errors import UpstreamUnavailableError
from src.domain.ports.fundamentals_source_port import IFundamentalsSource
from src.domain.ports.price_source_port import IPriceSource
from src.domain.services.normalization import (
    normalize_batch,
    normalize_flat_statement,
    normalize_price,
)
from src.infrastructure.stock_data.http_json import HttpJsonSource

logger = logging.getLogger(__name__)

FMP_BASE_URL = "https://financialmodelingprep.com/api/v3"


class _FmpSource(HttpJsonSource):
    VENDOR = "FMP"

    def __init__(
        self,
        api_key: str,
        base_url: str = FMP_BASE_URL,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    async def _fetch(self, path: str, params: dict, symbol: str) -> Any:
        payload = await self._get_json(
            f"{self._base_url}{path}", {**params, "apikey": self._api_key}, symbol
        )
        if isinstance(payload, dict) and "Error Message" in payload:
            raise UpstreamUnavailableError(
                f"FMP rejected the request for {symbol}: {payload['Error Message']}", symbol
            )
        return payload


class FmpPriceSource(_FmpSource, IPriceSource):
    """Daily adjusted / raw closes from FMP's historical-price-full endpoint."""

    def __init__(self, api_key: str, history_days: int = 1825, **kwargs) -> None:
        super().__init__(api_key, **kwargs)
        self._history_days = history_days

    async def get_prices(self, symbol: str) -> list[PricePoint]:
        start = date.today() - timedelta(days=self._history_days)
        payload = await self._fetch(
            f"/historical-price-full/{symbol}", {"from": start.isoformat()}, symbol
        )
        rows = (payload.get("historical") or []) if isinstance(payload, dict) else []
        prices = normalize_batch(rows, normalize_price, symbol)
        logger.info("Received %d daily prices for %s from FMP", len(prices), symbol)
        return prices


class FmpFundamentalsSource(_FmpSource, IFundamentalsSource):
    """Quarterly income statements from FMP."""

    def __init__(self, api_key: str, limit: int = 20, **kwargs) -> None:
        super().__init__(api_key, **kwargs)
        self._limit = limit

    async def get_fundamentals(self, symbol: str) -> list[FundamentalRecord]:
        payload = await self._fetch(
            f"/income-statement/{symbol}",
            {"period": "quarter", "limit": self._limit},
            symbol,
        )
        rows = payload if isinstance(payload, list) else []
        records = normalize_batch(rows, normalize_flat_statement, symbol)
        logger.info("Received %d quarters of fundamental data for %s", len(records), symbol)
        return records
