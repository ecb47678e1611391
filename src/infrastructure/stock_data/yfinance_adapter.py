"""
Infrastructure adapter: yfinance → IPriceSource / IFundamentalsSource.
All yfinance-specific details (history(), quarterly_income_stmt) are confined here;
the rest of the codebase depends only on the ports.

yfinance is synchronous, so each call runs in a worker thread.
"""

import asyncio
import logging
from datetime import date, timedelta
from typing import Any

import yfinance as yf

from src.domain.entities.stock_series import FundamentalRecord, PricePoint
from src.domain.errors import UpstreamUnavailableError
from src.domain.ports.fundamentals_source_port import IFundamentalsSource
from src.domain.ports.price_source_port import IPriceSource
from src.domain.services.normalization import (
    LineItemCodes,
    normalize_batch,
    normalize_itemized_statement,
    normalize_price,
)

logger = logging.getLogger(__name__)

YFINANCE_CODES = LineItemCodes(
    revenue=("Total Revenue", "Operating Revenue"),
    gross_profit=("Gross Profit",),
    gross_margin=(),
)


class YFinancePriceSource(IPriceSource):
    """Fetches daily closes from Yahoo Finance via the yfinance library."""

    def __init__(self, history_days: int = 1825) -> None:
        self._history_days = history_days

    async def get_prices(self, symbol: str) -> list[PricePoint]:
        return await asyncio.to_thread(self._get_prices, symbol)

    def _get_prices(self, symbol: str) -> list[PricePoint]:
        start = date.today() - timedelta(days=self._history_days)
        try:
            history = yf.Ticker(symbol).history(
                start=start.isoformat(), interval="1d", auto_adjust=False
            )
        except Exception as exc:
            raise UpstreamUnavailableError(
                f"Yahoo Finance price request failed for {symbol}", symbol
            ) from exc

        if history is None or history.empty:
            return []

        rows = [
            {
                "date": timestamp,
                "close": row.get("Close"),
                "adjClose": row.get("Adj Close"),
            }
            for timestamp, row in history.iterrows()
        ]
        return normalize_batch(rows, normalize_price, symbol)


class YFinanceFundamentalsSource(IFundamentalsSource):
    """Quarterly income statements from yfinance (one DataFrame column per quarter)."""

    def __init__(self, limit: int = 20) -> None:
        self._limit = limit

    async def get_fundamentals(self, symbol: str) -> list[FundamentalRecord]:
        return await asyncio.to_thread(self._get_fundamentals, symbol)

    def _get_fundamentals(self, symbol: str) -> list[FundamentalRecord]:
        try:
            statement = yf.Ticker(symbol).quarterly_income_stmt
        except Exception as exc:
            raise UpstreamUnavailableError(
                f"Yahoo Finance fundamentals request failed for {symbol}", symbol
            ) from exc

        if statement is None or statement.empty:
            return []

        columns: list[tuple[Any, dict]] = [
            (period_end, statement[period_end].to_dict())
            for period_end in list(statement.columns)[: self._limit]
        ]
        records = normalize_batch(
            columns,
            lambda column: normalize_itemized_statement(column[0], column[1], YFINANCE_CODES),
            symbol,
        )
        logger.info("Received %d quarters of fundamental data for %s", len(records), symbol)
        return records
