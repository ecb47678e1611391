from datetime import date

import pytest

from src.domain.entities.stock_series import MergedRecord
from src.domain.services.metrics import derive_metrics, quarterly_revenue_series

from tests.fakes import quarter


@pytest.fixture
def five_quarters():
    return [
        quarter("2024-01-01", 100.0),
        quarter("2024-04-01", 110.0),
        quarter("2024-07-01", 90.0),
        quarter("2024-10-01", 120.0),
        quarter("2025-01-01", 130.0),
    ]


def test_ttm_and_yoy_on_five_quarters(five_quarters):
    derived = derive_metrics(five_quarters)

    assert [d.ttm_revenue for d in derived[:3]] == [None, None, None]
    assert derived[3].ttm_revenue == 420.0
    assert derived[4].ttm_revenue == 450.0

    assert [d.yoy_growth for d in derived[:4]] == [None, None, None, None]
    assert derived[4].yoy_growth == pytest.approx(30.0)


def test_derived_records_carry_quarter_labels(five_quarters):
    derived = derive_metrics(five_quarters)
    assert derived[4].date == date(2025, 1, 1)
    assert (derived[4].quarter, derived[4].fiscal_year) == (1, 2025)
    assert derived[4].price is None


def test_yoy_is_null_for_zero_or_missing_base():
    base_zero = [quarter("2024-01-01", 0.0)] + [quarter(f"2024-0{m}-01", 10.0) for m in (4, 5, 6, 7)]
    assert derive_metrics(base_zero)[4].yoy_growth is None

    base_null = [quarter("2024-01-01", None)] + [quarter(f"2024-0{m}-01", 10.0) for m in (4, 5, 6, 7)]
    assert derive_metrics(base_null)[4].yoy_growth is None

    current_null = [quarter(f"2024-0{m}-01", 10.0) for m in (1, 4, 5, 6)] + [quarter("2024-07-01", None)]
    assert derive_metrics(current_null)[4].yoy_growth is None


def test_ttm_treats_null_window_member_as_zero():
    series = [
        quarter("2024-01-01", 100.0),
        quarter("2024-04-01", None),
        quarter("2024-07-01", 90.0),
        quarter("2024-10-01", 120.0),
    ]
    assert derive_metrics(series)[3].ttm_revenue == 310.0


def test_derive_metrics_accepts_merged_records():
    series = [
        MergedRecord(date(2024, 1, d), price=10.0 + d, revenue=10.0, margin=40.0)
        for d in range(1, 6)
    ]
    derived = derive_metrics(series)
    assert derived[3].ttm_revenue == 40.0
    assert derived[4].yoy_growth == 0.0
    assert derived[4].price == 15.0
    assert derived[4].margin == 40.0
    assert derived[4].quarter is None


def test_derive_metrics_empty():
    assert derive_metrics([]) == []


def test_quarterly_revenue_series_filters_and_sorts():
    records = [
        quarter("2024-06-30", 85.0),
        quarter("2024-03-31", None),
        quarter("2023-12-31", 80.0),
    ]
    usable = quarterly_revenue_series(records)
    assert [r.date for r in usable] == [date(2023, 12, 31), date(2024, 6, 30)]
