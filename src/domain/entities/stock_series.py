"""
Domain entities for price history, quarterly fundamentals and the merged chart series.
Zero external dependencies, pure Python dataclasses only.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional


@dataclass(frozen=True)
class PricePoint:
    date: date
    price: float


@dataclass(frozen=True)
class FundamentalRecord:
    """One reported fiscal quarter. *date* is the period end date."""

    date: date
    quarter: int
    fiscal_year: int
    revenue: Optional[float] = None
    gross_profit: Optional[float] = None
    gross_margin: Optional[float] = None
    announcement_date: Optional[date] = None

    @property
    def label(self) -> str:
        return f"Q{self.quarter} {self.fiscal_year}"

    @property
    def display_date(self) -> date:
        return self.announcement_date or self.date


@dataclass(frozen=True)
class MergedRecord:
    date: date
    price: Optional[float]
    revenue: Optional[float] = None
    margin: Optional[float] = None


@dataclass(frozen=True)
class DerivedRecord:
    date: date
    price: Optional[float]
    revenue: Optional[float]
    margin: Optional[float]
    ttm_revenue: Optional[float] = None
    yoy_growth: Optional[float] = None
    quarter: Optional[int] = None
    fiscal_year: Optional[int] = None


@dataclass(frozen=True)
class DateDomain:
    start: date
    end: date


@dataclass(frozen=True)
class CachedRow:
    """One (symbol, date) cache entry. *quarter* is set only on rows that carry a reported quarter."""

    symbol: str
    date: date
    price: Optional[float] = None
    revenue: Optional[float] = None
    margin: Optional[float] = None
    updated_at: Optional[datetime] = None
    gross_profit: Optional[float] = None
    quarter: Optional[int] = None
    fiscal_year: Optional[int] = None
    announcement_date: Optional[date] = None


@dataclass(frozen=True)
class StockAnalysis:
    symbol: str
    prices: list[PricePoint]
    fundamentals: list[FundamentalRecord]
    merged: list[MergedRecord]
    derived: list[DerivedRecord]
    domain: Optional[DateDomain]
    source: str = "upstream"
