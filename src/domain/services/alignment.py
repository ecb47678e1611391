"""
Domain service: merge daily prices with quarterly fundamentals for charting.

Matching is exact calendar-day equality. A fundamentals record whose period
date is not a trading day contributes nothing to the merged series; it still
widens the shared date domain so sibling charts line up.
"""

from datetime import date, datetime
from typing import Iterable, Optional, Protocol, Sequence, TypeVar

from src.domain.entities.stock_series import (
    DateDomain,
    FundamentalRecord,
    MergedRecord,
    PricePoint,
)


class _Dated(Protocol):
    date: date


D = TypeVar("D", bound=_Dated)


def as_day(value: date) -> date:
    return value.date() if isinstance(value, datetime) else value


def sort_by_day(records: Iterable[D]) -> list[D]:
    """Stable ascending sort by calendar day; duplicate days keep the last occurrence."""
    by_day: dict[date, D] = {}
    for record in sorted(records, key=lambda r: as_day(r.date)):
        by_day[as_day(record.date)] = record
    return list(by_day.values())


def date_domain(*series: Sequence[_Dated]) -> Optional[DateDomain]:
    """Union of the min / max days of every non-empty series; None if all are empty."""
    days = [as_day(r.date) for s in series for r in s]
    if not days:
        return None
    return DateDomain(start=min(days), end=max(days))


def align(
    prices: Sequence[PricePoint],
    fundamentals: Sequence[FundamentalRecord],
) -> tuple[list[MergedRecord], Optional[DateDomain]]:
    """Join each trading day with the fundamentals reported for that same day.

    Returns:
        (merged, domain) where *merged* has one record per distinct price day,
        strictly ascending, and *domain* spans both inputs (None if both empty).
    """
    sorted_prices = sort_by_day(prices)
    sorted_fundamentals = sort_by_day(fundamentals)
    by_day = {as_day(f.date): f for f in sorted_fundamentals}

    merged = []
    for point in sorted_prices:
        day = as_day(point.date)
        match = by_day.get(day)
        merged.append(
            MergedRecord(
                date=day,
                price=point.price,
                revenue=match.revenue if match else None,
                margin=match.gross_margin if match else None,
            )
        )
    return merged, date_domain(sorted_prices, sorted_fundamentals)
