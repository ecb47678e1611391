"""
Infrastructure adapter: Finnhub financials-reported → IFundamentalsSource.

Each filing nests its income statement under report.ic as a list of
{concept, label, unit, value} line items keyed by US-GAAP concept.
"""

import logging
from typing import Optional

import httpx

from src.domain.entities.stock_series import FundamentalRecord
from src.domain.errors import MalformedRecordError
from src.domain.ports.fundamentals_source_port import IFundamentalsSource
from src.domain.services.normalization import (
    LineItemCodes,
    line_items_by_code,
    normalize_batch,
    normalize_itemized_statement,
)
from src.infrastructure.stock_data.http_json import HttpJsonSource

logger = logging.getLogger(__name__)

FINNHUB_BASE_URL = "https://finnhub.io/api/v1"

FINNHUB_CODES = LineItemCodes(
    revenue=(
        "us-gaap_Revenues",
        "us-gaap_RevenueFromContractWithCustomerExcludingAssessedTax",
        "us-gaap_SalesRevenueNet",
    ),
    gross_profit=("us-gaap_GrossProfit",),
    gross_margin=(),
)


class FinnhubFundamentalsSource(HttpJsonSource, IFundamentalsSource):
    """Quarterly as-reported income statements from Finnhub."""

    VENDOR = "Finnhub"

    def __init__(
        self,
        api_key: str,
        limit: int = 20,
        base_url: str = FINNHUB_BASE_URL,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self._api_key = api_key
        self._limit = limit
        self._base_url = base_url.rstrip("/")

    async def get_fundamentals(self, symbol: str) -> list[FundamentalRecord]:
        payload = await self._get_json(
            f"{self._base_url}/stock/financials-reported",
            {"symbol": symbol, "freq": "quarterly", "token": self._api_key},
            symbol,
        )
        filings = (payload.get("data") or []) if isinstance(payload, dict) else []
        records = normalize_batch(filings[: self._limit], self._normalize, symbol)
        logger.info("Received %d quarterly filings for %s from Finnhub", len(records), symbol)
        return records

    @staticmethod
    def _normalize(filing: dict) -> Optional[FundamentalRecord]:
        if not isinstance(filing, dict):
            raise MalformedRecordError(f"Filing is not an object: {type(filing).__name__}")
        report = filing.get("report") or {}
        if not isinstance(report, dict):
            raise MalformedRecordError("Filing report is not an object")
        return normalize_itemized_statement(
            filing.get("endDate"),
            line_items_by_code(report.get("ic") or [], code_key="concept"),
            FINNHUB_CODES,
            quarter=filing.get("quarter"),
            fiscal_year=filing.get("year"),
            announcement_date=filing.get("filedDate"),
        )
