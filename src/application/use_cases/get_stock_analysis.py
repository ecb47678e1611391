"""
Use-case: build the dashboard series (prices, fundamentals, merged, derived, domain) for one symbol.
Depends only on Domain ports, entities and services; no infrastructure imports.

Flow per request:
  1. Serve from the cache when it holds fresh rows for the symbol.
  2. Otherwise fetch prices and fundamentals concurrently, each under a timeout.
     Fundamentals failures degrade to an empty sequence; price failures are fatal.
  3. Align, derive TTM / YoY, then write one cache row per day. Failed writes are
     logged and skipped. A price-only result (fundamentals unavailable) is never
     cached, so the next request retries the fundamentals vendor.
"""

import asyncio
import logging
import re
from datetime import date, timedelta
from typing import Any, Awaitable, Optional

from src.domain.entities.stock_series import (
    CachedRow,
    FundamentalRecord,
    MergedRecord,
    PricePoint,
    StockAnalysis,
)
from src.domain.errors import (
    InvalidRequestError,
    InvalidSymbolError,
    PersistenceError,
    UpstreamUnavailableError,
)
from src.domain.ports.fundamentals_source_port import IFundamentalsSource
from src.domain.ports.price_source_port import IPriceSource
from src.domain.ports.stock_cache_port import IStockCache
from src.domain.services.alignment import align, sort_by_day
from src.domain.services.metrics import derive_metrics, quarterly_revenue_series

logger = logging.getLogger(__name__)

SYMBOL_PATTERN = re.compile(r"^[A-Z0-9^][A-Z0-9.\-=]{0,14}$")


def normalize_symbol(symbol: str) -> str:
    """Strip and upper-case *symbol*.

    Raises:
        InvalidRequestError: if *symbol* is blank or not ticker-shaped.
    """
    if not symbol or not symbol.strip():
        raise InvalidRequestError("Symbol is required")
    cleaned = symbol.strip().upper()
    if not SYMBOL_PATTERN.match(cleaned):
        raise InvalidRequestError(f"{cleaned!r} is not a valid ticker symbol")
    return cleaned


def cache_rows(
    symbol: str,
    merged: list[MergedRecord],
    fundamentals: list[FundamentalRecord],
) -> list[CachedRow]:
    """One row per distinct day across the merged series and the fundamentals.

    Days that carry a reported quarter keep its fiscal labels, gross profit and
    announcement date so a cache hit rebuilds the same records.
    """
    rows: dict[date, CachedRow] = {
        record.date: CachedRow(
            symbol=symbol,
            date=record.date,
            price=record.price,
            revenue=record.revenue,
            margin=record.margin,
        )
        for record in merged
    }
    for record in sort_by_day(fundamentals):
        priced = rows.get(record.date)
        rows[record.date] = CachedRow(
            symbol=symbol,
            date=record.date,
            price=priced.price if priced else None,
            revenue=record.revenue,
            margin=record.gross_margin,
            gross_profit=record.gross_profit,
            quarter=record.quarter,
            fiscal_year=record.fiscal_year,
            announcement_date=record.announcement_date,
        )
    return [rows[day] for day in sorted(rows)]


class GetStockAnalysisUseCase:
    def __init__(
        self,
        price_source: IPriceSource,
        fundamentals_source: IFundamentalsSource,
        cache: Optional[IStockCache] = None,
        upstream_timeout: float = 10.0,
        cache_max_age: timedelta = timedelta(hours=24),
        max_concurrent_writes: int = 8,
    ) -> None:
        """
        Args:
            price_source:          IPriceSource implementation (e.g. FmpPriceSource).
            fundamentals_source:   IFundamentalsSource implementation.
            cache:                 Optional IStockCache; caching is skipped when None.
            upstream_timeout:      Seconds allowed per upstream call.
            cache_max_age:         Rows older than this are not served from the cache.
            max_concurrent_writes: Upper bound on in-flight cache writes.
        """
        self._price_source = price_source
        self._fundamentals_source = fundamentals_source
        self._cache = cache
        self._upstream_timeout = upstream_timeout
        self._cache_max_age = cache_max_age
        self._max_concurrent_writes = max_concurrent_writes

    async def execute(self, symbol: str) -> StockAnalysis:
        """Fetch (or load), align and derive the dashboard series for *symbol*.

        Raises:
            InvalidRequestError:      if *symbol* is blank or malformed.
            UpstreamUnavailableError: if price data cannot be fetched.
            InvalidSymbolError:       if the price source has no data for *symbol*.
        """
        symbol = normalize_symbol(symbol)

        cached = await self._load_cached(symbol)
        if cached is not None:
            prices, fundamentals = cached
            source = "cache"
            complete = False
        else:
            prices, fundamentals, complete = await self._fetch(symbol)
            source = "upstream"

        merged, domain = align(prices, fundamentals)
        derived = derive_metrics(quarterly_revenue_series(fundamentals))

        if complete:
            await self._store(symbol, merged, fundamentals)
        elif source == "upstream":
            logger.info("Not caching %s: fundamentals were unavailable", symbol)

        return StockAnalysis(
            symbol=symbol,
            prices=sort_by_day(prices),
            fundamentals=sort_by_day(fundamentals),
            merged=merged,
            derived=derived,
            domain=domain,
            source=source,
        )

    async def _fetch(
        self, symbol: str
    ) -> tuple[list[PricePoint], list[FundamentalRecord], bool]:
        """Prices, fundamentals, and whether the fundamentals vendor answered."""
        logger.info("Fetching price and fundamental data for %s", symbol)
        prices, fundamentals = await asyncio.gather(
            self._bounded(self._price_source.get_prices(symbol), symbol, "prices"),
            self._bounded(
                self._fundamentals_source.get_fundamentals(symbol), symbol, "fundamentals"
            ),
            return_exceptions=True,
        )

        if isinstance(prices, BaseException):
            logger.error("Price data unavailable for %s: %s", symbol, prices)
            raise prices
        complete = True
        if isinstance(fundamentals, UpstreamUnavailableError):
            logger.warning(
                "Fundamentals unavailable for %s, continuing with prices only: %s",
                symbol,
                fundamentals,
            )
            fundamentals, complete = [], False
        elif isinstance(fundamentals, Exception):
            logger.error(
                "Fundamentals failed for %s, continuing with prices only",
                symbol,
                exc_info=fundamentals,
            )
            fundamentals, complete = [], False
        elif isinstance(fundamentals, BaseException):
            raise fundamentals

        if not prices:
            raise InvalidSymbolError(f"No price data found for {symbol}", symbol)
        return prices, fundamentals, complete

    async def _bounded(self, call: Awaitable[Any], symbol: str, what: str) -> Any:
        try:
            return await asyncio.wait_for(call, timeout=self._upstream_timeout)
        except asyncio.TimeoutError as exc:
            raise UpstreamUnavailableError(
                f"Timed out fetching {what} for {symbol}", symbol
            ) from exc

    async def _load_cached(
        self, symbol: str
    ) -> Optional[tuple[list[PricePoint], list[FundamentalRecord]]]:
        if self._cache is None:
            return None
        try:
            rows = await self._cache.get_fresh(symbol, self._cache_max_age)
        except PersistenceError as exc:
            logger.warning("Cache read failed for %s, fetching upstream: %s", symbol, exc)
            return None

        prices = [PricePoint(date=r.date, price=r.price) for r in rows if r.price is not None]
        if not prices:
            return None
        fundamentals = [
            FundamentalRecord(
                date=r.date,
                quarter=r.quarter,
                fiscal_year=r.fiscal_year or r.date.year,
                revenue=r.revenue,
                gross_profit=r.gross_profit,
                gross_margin=r.margin,
                announcement_date=r.announcement_date,
            )
            for r in rows
            if r.quarter is not None
        ]
        logger.info("Serving %s from cache (%d rows)", symbol, len(rows))
        return prices, fundamentals

    async def _store(
        self,
        symbol: str,
        merged: list[MergedRecord],
        fundamentals: list[FundamentalRecord],
    ) -> None:
        if self._cache is None:
            return
        rows = cache_rows(symbol, merged, fundamentals)
        gate = asyncio.Semaphore(self._max_concurrent_writes)

        async def save(row: CachedRow) -> bool:
            async with gate:
                try:
                    await self._cache.upsert(row)
                    return True
                except PersistenceError as exc:
                    logger.warning("Skipping cache write for %s %s: %s", symbol, row.date, exc)
                    return False

        written = await asyncio.gather(*(save(row) for row in rows))
        logger.info("Cached %d of %d rows for %s", sum(written), len(rows), symbol)
