"""
Infrastructure adapter: Supabase (PostgREST over HTTPS) → IStockCache.

Expects a stock_data table with a unique (symbol, date) constraint and columns
price, revenue, margin, updated_at (timestamptz). Each row is written with its
own request so one failed write never blocks the others; null fields are
omitted from the payload so merge-duplicates leaves stored values untouched.
"""

from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Optional

import httpx

from src.domain.entities.stock_series import CachedRow
from src.domain.errors import PersistenceError
from src.domain.ports.stock_cache_port import IStockCache

TABLE = "stock_data"

VALUE_COLUMNS = ("price", "revenue", "margin", "gross_profit", "quarter", "fiscal_year")
SELECT_COLUMNS = ",".join(("symbol", "date", "updated_at", "announcement_date") + VALUE_COLUMNS)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SupabaseStockCache(IStockCache):
    """Cache rows stored in a hosted Supabase Postgres table."""

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._endpoint = f"{url.rstrip('/')}/rest/v1/{TABLE}"
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
        }
        self._timeout = timeout
        self._client = client
        self._clock = clock

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                yield client

    async def upsert(self, row: CachedRow) -> None:
        payload = {
            "symbol": row.symbol,
            "date": row.date.isoformat(),
            "updated_at": (row.updated_at or self._clock()).isoformat(),
        }
        for field in VALUE_COLUMNS:
            value = getattr(row, field)
            if value is not None:
                payload[field] = value
        if row.announcement_date is not None:
            payload["announcement_date"] = row.announcement_date.isoformat()
        try:
            async with self._session() as client:
                response = await client.post(
                    self._endpoint,
                    params={"on_conflict": "symbol,date"},
                    json=payload,
                    headers={
                        **self._headers,
                        "Prefer": "resolution=merge-duplicates,return=minimal",
                    },
                    timeout=self._timeout,
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise PersistenceError(
                f"Failed to write {row.symbol} {row.date}: {exc.__class__.__name__}", row.symbol
            ) from exc

    async def get_fresh(self, symbol: str, max_age: timedelta) -> list[CachedRow]:
        cutoff = self._clock() - max_age
        try:
            async with self._session() as client:
                response = await client.get(
                    self._endpoint,
                    params={
                        "select": SELECT_COLUMNS,
                        "symbol": f"eq.{symbol}",
                        "updated_at": f"gte.{cutoff.isoformat()}",
                        "order": "date.asc",
                    },
                    headers=self._headers,
                    timeout=self._timeout,
                )
                response.raise_for_status()
                return [_parse_row(row) for row in response.json()]
        except (httpx.HTTPError, KeyError, TypeError, ValueError, AttributeError) as exc:
            raise PersistenceError(
                f"Failed to read cache for {symbol}: {exc.__class__.__name__}", symbol
            ) from exc


def _parse_row(row: dict) -> CachedRow:
    return CachedRow(
        symbol=row["symbol"],
        date=date.fromisoformat(row["date"]),
        price=row.get("price"),
        revenue=row.get("revenue"),
        margin=row.get("margin"),
        updated_at=datetime.fromisoformat(row["updated_at"]) if row.get("updated_at") else None,
        gross_profit=row.get("gross_profit"),
        quarter=row.get("quarter"),
        fiscal_year=row.get("fiscal_year"),
        announcement_date=(
            date.fromisoformat(row["announcement_date"]) if row.get("announcement_date") else None
        ),
    )
