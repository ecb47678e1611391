"""
Vendor selection: Settings → IPriceSource / IFundamentalsSource adapters.
"""

from typing import Optional

import httpx

from src.domain.errors import ConfigurationError
from src.domain.ports.fundamentals_source_port import IFundamentalsSource
from src.domain.ports.price_source_port import IPriceSource
from src.infrastructure.config.settings import Settings
from src.infrastructure.stock_data.finnhub_adapter import FinnhubFundamentalsSource
from src.infrastructure.stock_data.fmp_adapter import FmpFundamentalsSource, FmpPriceSource
from src.infrastructure.stock_data.yfinance_adapter import (
    YFinanceFundamentalsSource,
    YFinancePriceSource,
)


def build_price_source(
    settings: Settings, client: Optional[httpx.AsyncClient] = None
) -> IPriceSource:
    if settings.price_vendor == "fmp":
        return FmpPriceSource(
            _require(settings.fmp_api_key, "FMP_API_KEY"),
            history_days=settings.price_history_days,
            timeout=settings.upstream_timeout,
            client=client,
        )
    if settings.price_vendor == "yfinance":
        return YFinancePriceSource(history_days=settings.price_history_days)
    raise ConfigurationError(f"Unknown PRICE_VENDOR: {settings.price_vendor!r}")


def build_fundamentals_source(
    settings: Settings, client: Optional[httpx.AsyncClient] = None
) -> IFundamentalsSource:
    if settings.fundamentals_vendor == "fmp":
        return FmpFundamentalsSource(
            _require(settings.fmp_api_key, "FMP_API_KEY"),
            limit=settings.fundamentals_limit,
            timeout=settings.upstream_timeout,
            client=client,
        )
    if settings.fundamentals_vendor == "finnhub":
        return FinnhubFundamentalsSource(
            _require(settings.finnhub_api_key, "FINNHUB_API_KEY"),
            limit=settings.fundamentals_limit,
            timeout=settings.upstream_timeout,
            client=client,
        )
    if settings.fundamentals_vendor == "yfinance":
        return YFinanceFundamentalsSource(limit=settings.fundamentals_limit)
    raise ConfigurationError(
        f"Unknown FUNDAMENTALS_VENDOR: {settings.fundamentals_vendor!r}"
    )


def _require(value: Optional[str], name: str) -> str:
    if not value:
        raise ConfigurationError(f"{name} is not set")
    return value
