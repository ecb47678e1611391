"""
Domain service: trailing-twelve-month revenue and year-over-year growth.

Both metrics are positional: index i is compared with index i - 4, which
assumes one record per quarter with no gaps. A missing quarter shifts the
comparison window.

Null policy:
  - TTM: a null revenue inside the window contributes 0.
  - YoY: any null required operand (or a zero base) nulls the result.
"""

from typing import Optional, Sequence, Union

from src.domain.entities.stock_series import DerivedRecord, FundamentalRecord, MergedRecord
from src.domain.services.alignment import sort_by_day

TTM_WINDOW = 4
YOY_LAG = 4


def ttm_revenue(revenues: Sequence[Optional[float]], i: int) -> Optional[float]:
    if i < TTM_WINDOW - 1:
        return None
    return sum(r or 0.0 for r in revenues[i - TTM_WINDOW + 1 : i + 1])


def yoy_growth(revenues: Sequence[Optional[float]], i: int) -> Optional[float]:
    if i < YOY_LAG:
        return None
    current, base = revenues[i], revenues[i - YOY_LAG]
    if current is None or base is None or base == 0:
        return None
    return (current - base) / base * 100


def derive_metrics(
    series: Sequence[Union[MergedRecord, FundamentalRecord]],
) -> list[DerivedRecord]:
    """Annotate a date-ascending series with ttm_revenue and yoy_growth."""
    revenues = [record.revenue for record in series]
    derived = []
    for i, record in enumerate(series):
        if isinstance(record, FundamentalRecord):
            price, margin = None, record.gross_margin
            quarter, fiscal_year = record.quarter, record.fiscal_year
        else:
            price, margin = record.price, record.margin
            quarter = fiscal_year = None
        derived.append(
            DerivedRecord(
                date=record.date,
                price=price,
                revenue=record.revenue,
                margin=margin,
                ttm_revenue=ttm_revenue(revenues, i),
                yoy_growth=yoy_growth(revenues, i),
                quarter=quarter,
                fiscal_year=fiscal_year,
            )
        )
    return derived


def quarterly_revenue_series(
    fundamentals: Sequence[FundamentalRecord],
) -> list[FundamentalRecord]:
    """Quarters usable for revenue charts: revenue present, quarter in 1..4, sorted by period date."""
    usable = [
        f for f in fundamentals
        if f.revenue is not None and 1 <= f.quarter <= 4
    ]
    return sort_by_day(usable)
