"""
Runtime configuration for the stock data service.

Settings is built once in the composition root and passed explicitly to every
adapter; nothing below the entrypoint reads os.environ.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from src.domain.errors import ConfigurationError

PRICE_VENDORS = ("fmp", "yfinance")
FUNDAMENTALS_VENDORS = ("fmp", "finnhub", "yfinance")
CACHE_BACKENDS = ("none", "sqlite", "supabase")


@dataclass(frozen=True)
class Settings:
    price_vendor: str = "fmp"
    fundamentals_vendor: str = "fmp"
    fmp_api_key: Optional[str] = None
    finnhub_api_key: Optional[str] = None
    cache_backend: str = "none"
    sqlite_path: str = "stock_cache.db"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    cache_max_age_hours: float = 24.0
    upstream_timeout: float = 10.0
    price_history_days: int = 1825
    fundamentals_limit: int = 20
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from an environment mapping (defaults to os.environ).

        Raises:
            ConfigurationError: on unknown vendor / backend names or bad numbers.
        """
        env = os.environ if environ is None else environ
        settings = cls(
            price_vendor=(env.get("PRICE_VENDOR") or "fmp").strip().lower(),
            fundamentals_vendor=(env.get("FUNDAMENTALS_VENDOR") or "fmp").strip().lower(),
            fmp_api_key=env.get("FMP_API_KEY") or None,
            finnhub_api_key=env.get("FINNHUB_API_KEY") or None,
            cache_backend=(env.get("CACHE_BACKEND") or "none").strip().lower(),
            sqlite_path=env.get("SQLITE_PATH") or "stock_cache.db",
            supabase_url=env.get("SUPABASE_URL") or None,
            supabase_key=env.get("SUPABASE_KEY") or None,
            cache_max_age_hours=_number(env, "CACHE_MAX_AGE_HOURS", 24.0, float),
            upstream_timeout=_number(env, "UPSTREAM_TIMEOUT_SECONDS", 10.0, float),
            price_history_days=_number(env, "PRICE_HISTORY_DAYS", 1825, int),
            fundamentals_limit=_number(env, "FUNDAMENTALS_LIMIT", 20, int),
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.price_vendor not in PRICE_VENDORS:
            raise ConfigurationError(f"Unknown PRICE_VENDOR: {self.price_vendor!r}")
        if self.fundamentals_vendor not in FUNDAMENTALS_VENDORS:
            raise ConfigurationError(
                f"Unknown FUNDAMENTALS_VENDOR: {self.fundamentals_vendor!r}"
            )
        if self.cache_backend not in CACHE_BACKENDS:
            raise ConfigurationError(f"Unknown CACHE_BACKEND: {self.cache_backend!r}")


def _number(env: Mapping[str, str], key: str, default, cast):
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from exc
