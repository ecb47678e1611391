"""
Domain error taxonomy for the stock data pipeline.
Adapters translate vendor, HTTP and database exceptions into these types;
the entrypoint maps them to user-facing responses.
"""

from typing import Optional

USER_HINT = "Please ensure the symbol is valid and try again."


class StockDataError(Exception):
    def __init__(self, message: str, symbol: Optional[str] = None) -> None:
        super().__init__(message)
        self.symbol = symbol


class UpstreamUnavailableError(StockDataError):
    """Network failure, timeout or non-success status from a market data vendor."""


class InvalidSymbolError(StockDataError):
    """The vendor returned an empty result set for a syntactically valid symbol."""


class MalformedRecordError(StockDataError):
    """A single raw record could not be normalized."""


class PersistenceError(StockDataError):
    """A cache store read or write failed."""


class ConfigurationError(StockDataError):
    """Missing credentials or an unknown vendor / backend name."""


class InvalidRequestError(StockDataError, ValueError):
    """The caller supplied a blank or malformed symbol."""
