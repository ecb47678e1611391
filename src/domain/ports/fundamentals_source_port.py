"""
Port (interface) for quarterly fundamentals providers.
Infrastructure adapters (e.g. FmpFundamentalsSource, FinnhubFundamentalsSource)
must implement this interface.
"""

from abc import ABC, abstractmethod

from src.domain.entities.stock_series import FundamentalRecord


class IFundamentalsSource(ABC):
    @abstractmethod
    async def get_fundamentals(self, symbol: str) -> list[FundamentalRecord]:
        """Return normalized quarterly statements for *symbol*, in any order.

        Records without a resolvable period date are dropped, not raised.

        Raises:
            UpstreamUnavailableError: on network failure or non-success status.
        """
        ...
