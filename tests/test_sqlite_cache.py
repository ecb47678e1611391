import asyncio
import sqlite3
from contextlib import closing
from datetime import date, datetime, timedelta, timezone

import pytest

from src.domain.entities.stock_series import CachedRow
from src.infrastructure.cache.sqlite_cache import SqliteStockCache

NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def cache(tmp_path):
    return SqliteStockCache(str(tmp_path / "cache.db"), clock=lambda: NOW)


def test_upsert_then_read_back_in_date_order(cache):
    asyncio.run(cache.upsert(CachedRow("AAPL", date(2024, 1, 3), price=11.0)))
    asyncio.run(cache.upsert(CachedRow("AAPL", date(2024, 1, 2), price=10.0, revenue=5.0, margin=40.0)))
    asyncio.run(cache.upsert(CachedRow("MSFT", date(2024, 1, 2), price=99.0)))

    rows = asyncio.run(cache.get_fresh("AAPL", timedelta(hours=24)))

    assert [(r.date, r.price) for r in rows] == [(date(2024, 1, 2), 10.0), (date(2024, 1, 3), 11.0)]
    assert rows[0].revenue == 5.0
    assert rows[0].margin == 40.0
    assert rows[0].updated_at == NOW


def test_upsert_is_last_write_wins_but_keeps_missing_fields(cache):
    day = date(2024, 3, 28)
    asyncio.run(cache.upsert(CachedRow("AAPL", day, price=170.0, revenue=90.0, margin=46.0)))
    asyncio.run(cache.upsert(CachedRow("AAPL", day, price=171.0)))

    (row,) = asyncio.run(cache.get_fresh("AAPL", timedelta(hours=24)))

    assert row.price == 171.0
    assert row.revenue == 90.0
    assert row.margin == 46.0


def test_stale_rows_are_not_fresh(cache):
    stale = NOW - timedelta(hours=25)
    asyncio.run(cache.upsert(CachedRow("AAPL", date(2024, 1, 2), price=10.0, updated_at=stale)))

    assert asyncio.run(cache.get_fresh("AAPL", timedelta(hours=24))) == []
    assert len(asyncio.run(cache.get_fresh("AAPL", timedelta(hours=48)))) == 1


def test_reported_quarter_fields_round_trip(cache):
    row = CachedRow(
        "AAPL",
        date(2024, 12, 28),
        revenue=124.3,
        margin=46.9,
        gross_profit=58.3,
        quarter=1,
        fiscal_year=2025,
        announcement_date=date(2025, 1, 30),
    )
    asyncio.run(cache.upsert(row))
    asyncio.run(cache.upsert(CachedRow("AAPL", date(2024, 12, 28), price=250.0)))

    (stored,) = asyncio.run(cache.get_fresh("AAPL", timedelta(hours=24)))

    assert stored.price == 250.0
    assert (stored.quarter, stored.fiscal_year) == (1, 2025)
    assert stored.gross_profit == 58.3
    assert stored.announcement_date == date(2025, 1, 30)


def test_older_cache_file_gains_new_columns(tmp_path):
    path = str(tmp_path / "old.db")
    with closing(sqlite3.connect(path)) as conn, conn:
        conn.execute(
            "CREATE TABLE stock_data (symbol TEXT NOT NULL, date TEXT NOT NULL, price REAL,"
            " revenue REAL, margin REAL, updated_at TEXT NOT NULL, PRIMARY KEY (symbol, date))"
        )
        conn.execute(
            "INSERT INTO stock_data VALUES ('AAPL', '2024-03-28', 171.0, NULL, NULL, ?)",
            (NOW.isoformat(),),
        )

    cache = SqliteStockCache(path, clock=lambda: NOW)
    asyncio.run(cache.upsert(CachedRow("AAPL", date(2024, 3, 30), revenue=90.0, quarter=2)))

    rows = asyncio.run(cache.get_fresh("AAPL", timedelta(hours=24)))
    assert [(r.date, r.price, r.quarter) for r in rows] == [
        (date(2024, 3, 28), 171.0, None),
        (date(2024, 3, 30), None, 2),
    ]
