"""
Port (interface) for daily price history providers.
Infrastructure adapters (e.g. FmpPriceSource, YFinancePriceSource) must implement this interface.
"""

from abc import ABC, abstractmethod

from src.domain.entities.stock_series import PricePoint


class IPriceSource(ABC):
    @abstractmethod
    async def get_prices(self, symbol: str) -> list[PricePoint]:
        """Return normalized daily prices for *symbol*, in any order.

        Raises:
            UpstreamUnavailableError: on network failure or non-success status.
        """
        ...
