"""
Port (interface) for the (symbol, date) keyed cache store.
Infrastructure adapters (e.g. SqliteStockCache, SupabaseStockCache) must implement this interface.
"""

from abc import ABC, abstractmethod
from datetime import timedelta

from src.domain.entities.stock_series import CachedRow


class IStockCache(ABC):
    @abstractmethod
    async def upsert(self, row: CachedRow) -> None:
        """Insert or update one row, last write wins per (symbol, date).

        Fields that are None on *row* leave the stored value untouched.

        Raises:
            PersistenceError: if the write fails.
        """
        ...

    @abstractmethod
    async def get_fresh(self, symbol: str, max_age: timedelta) -> list[CachedRow]:
        """Return rows for *symbol* updated within *max_age*, ascending by date.

        Raises:
            PersistenceError: if the read fails.
        """
        ...
