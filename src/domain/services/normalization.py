"""
Domain service: vendor payload → canonical PricePoint / FundamentalRecord.

Rules owned here:
  - Price: adjusted close first, raw close as fallback.
  - Revenue: first matching line item, absent → None (never 0).
  - Gross margin: vendor percentage when supplied (ratios in [-1, 1] are
    scaled to percent), otherwise gross_profit / revenue * 100.
  - Quarter / fiscal year: vendor values when valid, otherwise derived from
    the period end date.
  - Statements without a resolvable period date are dropped.
  - Records that are not JSON objects are malformed.

Vendor adapters only reshape their payloads into the flat or itemized forms
accepted below; every numeric and date decision is made in this module.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar

from src.domain.entities.stock_series import FundamentalRecord, PricePoint
from src.domain.errors import MalformedRecordError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class LineItemCodes:
    """Line item codes to search, in priority order, inside an itemized statement."""

    revenue: tuple[str, ...] = ("revenue", "totalRevenue", "operatingRevenue")
    gross_profit: tuple[str, ...] = ("grossProfit",)
    gross_margin: tuple[str, ...] = ("grossMargin",)


def parse_day(value: Any) -> Optional[date]:
    """Truncate a vendor date or timestamp to a calendar day; None if unresolvable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def parse_number(value: Any) -> Optional[float]:
    """Coerce a vendor number to float. Missing → None, garbage → MalformedRecordError."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if value == "" or value.lower() in ("none", "null", "nan", "-"):
            return None
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise MalformedRecordError(f"Unparseable number: {value!r}") from exc
    if math.isnan(number):
        return None
    if math.isinf(number):
        raise MalformedRecordError(f"Non-finite number: {value!r}")
    return number


def quarter_of(day: date) -> int:
    return (day.month - 1) // 3 + 1


def margin_percent(value: Optional[float]) -> Optional[float]:
    """Vendor-supplied margin as a percentage; ratios in [-1, 1] are scaled by 100."""
    if value is None:
        return None
    if -1 <= value <= 1:
        return value * 100
    return value


def gross_margin(gross_profit: Optional[float], revenue: Optional[float]) -> Optional[float]:
    if gross_profit is None or revenue is None or revenue == 0:
        return None
    return gross_profit / revenue * 100


def normalize_price(raw: Mapping[str, Any]) -> PricePoint:
    """Normalize one `{date, close, adjClose?}` row."""
    _require_mapping(raw, "Price row")
    day = parse_day(raw.get("date"))
    if day is None:
        raise MalformedRecordError(f"Price row has no resolvable date: {raw.get('date')!r}")
    price = parse_number(raw.get("adjClose"))
    if price is None:
        price = parse_number(raw.get("close"))
    if price is None:
        raise MalformedRecordError(f"Price row for {day} has neither adjClose nor close")
    return PricePoint(date=day, price=price)


def normalize_flat_statement(raw: Mapping[str, Any]) -> Optional[FundamentalRecord]:
    """Normalize a statement whose values sit directly on the record.

    Accepts the field names used by FMP-style income statements: `revenue`,
    `grossProfit`, `grossMargin` or `grossProfitRatio`, `period` ("Q1".."Q4"),
    `fiscalYear` or `calendarYear`, and a filing date for the announcement.
    """
    _require_mapping(raw, "Statement")
    day = parse_day(raw.get("date"))
    if day is None:
        return None
    supplied_margin = raw.get("grossMargin")
    if supplied_margin is None:
        supplied_margin = raw.get("grossProfitRatio")
    return _build_record(
        day,
        revenue=parse_number(raw.get("revenue")),
        gross_profit=parse_number(raw.get("grossProfit")),
        supplied_margin=parse_number(supplied_margin),
        quarter=raw.get("quarter", raw.get("period")),
        fiscal_year=raw.get("fiscalYear", raw.get("calendarYear")),
        announcement_date=_first_day(
            raw, ("announcementDate", "fillingDate", "filingDate", "acceptedDate")
        ),
    )


def normalize_itemized_statement(
    period_date: Any,
    items: Mapping[str, Any],
    codes: LineItemCodes = LineItemCodes(),
    quarter: Any = None,
    fiscal_year: Any = None,
    announcement_date: Any = None,
) -> Optional[FundamentalRecord]:
    """Normalize a statement whose values are typed line items keyed by code.

    Args:
        period_date:       Period end date or timestamp.
        items:             Mapping of line item code → raw value.
        codes:             Which codes carry revenue, gross profit and gross margin.
        quarter:           Vendor quarter (int or "Q1" style), derived when invalid.
        fiscal_year:       Vendor fiscal year, derived when invalid.
        announcement_date: Filing / release date, if the vendor reports one.
    """
    _require_mapping(items, "Line items")
    day = parse_day(period_date)
    if day is None:
        return None
    return _build_record(
        day,
        revenue=_first_value(items, codes.revenue),
        gross_profit=_first_value(items, codes.gross_profit),
        supplied_margin=_first_value(items, codes.gross_margin),
        quarter=quarter,
        fiscal_year=fiscal_year,
        announcement_date=parse_day(announcement_date),
    )


def line_items_by_code(
    items: Iterable[Mapping[str, Any]],
    code_key: str = "code",
    value_key: str = "value",
) -> dict[str, Any]:
    """Flatten `[{code, value}, ...]` into `{code: value}`; first occurrence wins."""
    flat: dict[str, Any] = {}
    for item in items or ():
        _require_mapping(item, "Line item")
        code = item.get(code_key)
        if code is not None and code not in flat:
            flat[code] = item.get(value_key)
    return flat


def normalize_batch(
    raws: Iterable[Any],
    normalize: Callable[[Any], Optional[T]],
    symbol: Optional[str] = None,
) -> list[T]:
    """Apply *normalize* to every raw record, skipping the ones that fail.

    A MalformedRecordError is logged and the record skipped; a None result
    (no resolvable date) is dropped silently.
    """
    records: list[T] = []
    skipped = 0
    for raw in raws:
        try:
            record = normalize(raw)
        except MalformedRecordError as exc:
            skipped += 1
            logger.warning("Skipping malformed record for %s: %s", symbol, exc)
            continue
        if record is None:
            skipped += 1
            continue
        records.append(record)
    if skipped:
        logger.info("Normalized %d records for %s, dropped %d", len(records), symbol, skipped)
    return records


def _build_record(
    day: date,
    revenue: Optional[float],
    gross_profit: Optional[float],
    supplied_margin: Optional[float],
    quarter: Any,
    fiscal_year: Any,
    announcement_date: Optional[date],
) -> FundamentalRecord:
    margin = (
        margin_percent(supplied_margin)
        if supplied_margin is not None
        else gross_margin(gross_profit, revenue)
    )
    return FundamentalRecord(
        date=day,
        quarter=_parse_quarter(quarter) or quarter_of(day),
        fiscal_year=_parse_year(fiscal_year) or day.year,
        revenue=revenue,
        gross_profit=gross_profit,
        gross_margin=margin,
        announcement_date=announcement_date,
    )


def _require_mapping(value: Any, what: str) -> None:
    if not isinstance(value, Mapping):
        raise MalformedRecordError(f"{what} is not an object: {type(value).__name__}")


def _first_value(items: Mapping[str, Any], codes: tuple[str, ...]) -> Optional[float]:
    for code in codes:
        if code in items:
            value = parse_number(items[code])
            if value is not None:
                return value
    return None


def _first_day(raw: Mapping[str, Any], keys: tuple[str, ...]) -> Optional[date]:
    for key in keys:
        day = parse_day(raw.get(key))
        if day is not None:
            return day
    return None


def _parse_quarter(value: Any) -> Optional[int]:
    if isinstance(value, str):
        value = value.strip().upper().removeprefix("Q")
    try:
        quarter = int(value)
    except (TypeError, ValueError):
        return None
    return quarter if 1 <= quarter <= 4 else None


def _parse_year(value: Any) -> Optional[int]:
    try:
        year = int(value)
    except (TypeError, ValueError):
        return None
    return year if 1000 <= year <= 9999 else None
