"""
Infrastructure adapter: local SQLite file → IStockCache.

One table, stock_data, keyed by (symbol, date). Upserts keep stored values for
columns the incoming row leaves as NULL. Files created before the fundamentals
columns existed are migrated with ALTER TABLE on open. Timestamps are stored
as UTC ISO-8601 strings so freshness checks can compare them as text.
"""

import asyncio
import sqlite3
from contextlib import closing
from datetime import date, datetime, timedelta, timezone
from typing import Callable

from src.domain.entities.stock_series import CachedRow
from src.domain.errors import PersistenceError
from src.domain.ports.stock_cache_port import IStockCache

_SCHEMA = """
CREATE TABLE IF NOT EXISTS stock_data (
    symbol     TEXT NOT NULL,
    date       TEXT NOT NULL,
    price      REAL,
    revenue    REAL,
    margin     REAL,
    updated_at TEXT NOT NULL,
    gross_profit      REAL,
    quarter           INTEGER,
    fiscal_year       INTEGER,
    announcement_date TEXT,
    PRIMARY KEY (symbol, date)
)
"""

_UPSERT = """
INSERT INTO stock_data (
    symbol, date, price, revenue, margin, updated_at,
    gross_profit, quarter, fiscal_year, announcement_date
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(symbol, date) DO UPDATE SET
    price      = COALESCE(excluded.price, stock_data.price),
    revenue    = COALESCE(excluded.revenue, stock_data.revenue),
    margin     = COALESCE(excluded.margin, stock_data.margin),
    updated_at = excluded.updated_at,
    gross_profit      = COALESCE(excluded.gross_profit, stock_data.gross_profit),
    quarter           = COALESCE(excluded.quarter, stock_data.quarter),
    fiscal_year       = COALESCE(excluded.fiscal_year, stock_data.fiscal_year),
    announcement_date = COALESCE(excluded.announcement_date, stock_data.announcement_date)
"""

_SELECT_FRESH = """
SELECT symbol, date, price, revenue, margin, updated_at,
       gross_profit, quarter, fiscal_year, announcement_date
FROM stock_data
WHERE symbol = ? AND updated_at >= ?
ORDER BY date ASC
"""

# Columns added after the first release; older files get them on open.
_ADDED_COLUMNS = {
    "gross_profit": "REAL",
    "quarter": "INTEGER",
    "fiscal_year": "INTEGER",
    "announcement_date": "TEXT",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class SqliteStockCache(IStockCache):
    """SQLite-backed cache for local development and tests."""

    def __init__(self, path: str, clock: Callable[[], datetime] = _utcnow) -> None:
        self._path = path
        self._clock = clock
        try:
            with closing(sqlite3.connect(self._path)) as conn, conn:
                conn.execute(_SCHEMA)
                existing = {info[1] for info in conn.execute("PRAGMA table_info(stock_data)")}
                for column, kind in _ADDED_COLUMNS.items():
                    if column not in existing:
                        conn.execute(f"ALTER TABLE stock_data ADD COLUMN {column} {kind}")
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot initialise SQLite cache at {path}: {exc}") from exc

    async def upsert(self, row: CachedRow) -> None:
        await asyncio.to_thread(self._upsert, row)

    async def get_fresh(self, symbol: str, max_age: timedelta) -> list[CachedRow]:
        return await asyncio.to_thread(self._get_fresh, symbol, max_age)

    def _upsert(self, row: CachedRow) -> None:
        updated_at = _to_utc(row.updated_at or self._clock())
        try:
            with closing(sqlite3.connect(self._path)) as conn, conn:
                conn.execute(
                    _UPSERT,
                    (
                        row.symbol,
                        row.date.isoformat(),
                        row.price,
                        row.revenue,
                        row.margin,
                        updated_at.isoformat(),
                        row.gross_profit,
                        row.quarter,
                        row.fiscal_year,
                        row.announcement_date.isoformat() if row.announcement_date else None,
                    ),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to write {row.symbol} {row.date}: {exc}", row.symbol
            ) from exc

    def _get_fresh(self, symbol: str, max_age: timedelta) -> list[CachedRow]:
        cutoff = _to_utc(self._clock()) - max_age
        try:
            with closing(sqlite3.connect(self._path)) as conn:
                rows = conn.execute(_SELECT_FRESH, (symbol, cutoff.isoformat())).fetchall()
            return [
                CachedRow(
                    symbol=sym,
                    date=date.fromisoformat(day),
                    price=price,
                    revenue=revenue,
                    margin=margin,
                    updated_at=datetime.fromisoformat(updated_at),
                    gross_profit=gross_profit,
                    quarter=quarter,
                    fiscal_year=fiscal_year,
                    announcement_date=date.fromisoformat(announced) if announced else None,
                )
                for (
                    sym, day, price, revenue, margin, updated_at,
                    gross_profit, quarter, fiscal_year, announced,
                ) in rows
            ]
        except (sqlite3.Error, ValueError) as exc:
            raise PersistenceError(f"Failed to read cache for {symbol}: {exc}", symbol) from exc
