from datetime import date

from src.domain.entities.stock_series import DateDomain, PricePoint
from src.domain.services.alignment import align, date_domain, sort_by_day

from tests.fakes import prices_for, quarter


def test_align_empty_inputs():
    merged, domain = align([], [])
    assert merged == []
    assert domain is None


def test_align_without_fundamentals_spans_price_range():
    prices = prices_for("2024-01-03", "2024-01-02", "2024-01-04")
    merged, domain = align(prices, [])

    assert domain == DateDomain(start=date(2024, 1, 2), end=date(2024, 1, 4))
    assert all(r.revenue is None and r.margin is None for r in merged)
    assert [r.date for r in merged] == [date(2024, 1, 2), date(2024, 1, 3), date(2024, 1, 4)]


def test_align_matches_on_exact_day():
    prices = prices_for("2024-03-27", "2024-03-28", "2024-04-01")
    fundamentals = [quarter("2024-03-28", revenue=90.0, margin=45.0)]

    merged, _ = align(prices, fundamentals)

    by_day = {r.date: r for r in merged}
    assert by_day[date(2024, 3, 28)].revenue == 90.0
    assert by_day[date(2024, 3, 28)].margin == 45.0
    assert by_day[date(2024, 3, 27)].revenue is None
    assert by_day[date(2024, 4, 1)].revenue is None


def test_align_does_not_match_nearest_day():
    prices = prices_for("2024-03-28", "2024-04-01")
    # period end falls on a weekend, one day after the last trading day
    fundamentals = [quarter("2024-03-29", revenue=90.0, margin=45.0)]

    merged, domain = align(prices, fundamentals)

    assert all(r.revenue is None and r.margin is None for r in merged)
    assert domain == DateDomain(start=date(2024, 3, 28), end=date(2024, 4, 1))


def test_align_output_is_strictly_ascending_without_duplicates():
    prices = [
        PricePoint(date(2024, 1, 5), 10.0),
        PricePoint(date(2024, 1, 2), 11.0),
        PricePoint(date(2024, 1, 5), 12.0),
        PricePoint(date(2024, 1, 3), 13.0),
    ]
    merged, _ = align(prices, [])

    days = [r.date for r in merged]
    assert days == sorted(set(days))
    assert merged[-1].price == 12.0


def test_align_domain_covers_fundamentals_outside_price_range():
    prices = prices_for("2024-02-01", "2024-02-02")
    fundamentals = [quarter("2023-12-31", 80.0), quarter("2024-03-31", 85.0)]

    _, domain = align(prices, fundamentals)

    assert domain == DateDomain(start=date(2023, 12, 31), end=date(2024, 3, 31))


def test_align_without_prices_keeps_fundamentals_domain():
    fundamentals = [quarter("2024-06-30", 85.0), quarter("2024-03-31", 80.0)]

    merged, domain = align([], fundamentals)

    assert merged == []
    assert domain == DateDomain(start=date(2024, 3, 31), end=date(2024, 6, 30))


def test_sort_by_day_is_stable_and_keeps_last():
    first = quarter("2024-03-31", 1.0)
    second = quarter("2024-03-31", 2.0)
    assert sort_by_day([second, quarter("2023-12-31", 0.5), first]) == [
        quarter("2023-12-31", 0.5),
        first,
    ]


def test_date_domain_ignores_empty_series():
    assert date_domain([], prices_for("2024-01-02")) == DateDomain(
        start=date(2024, 1, 2), end=date(2024, 1, 2)
    )
    assert date_domain([], []) is None
