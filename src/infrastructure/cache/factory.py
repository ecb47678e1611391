"""
Cache backend selection: Settings → IStockCache (or None when caching is off).
"""

from typing import Optional

from src.domain.errors import ConfigurationError
from src.domain.ports.stock_cache_port import IStockCache
from src.infrastructure.cache.sqlite_cache import SqliteStockCache
from src.infrastructure.cache.supabase_cache import SupabaseStockCache
from src.infrastructure.config.settings import Settings


def build_stock_cache(settings: Settings) -> Optional[IStockCache]:
    if settings.cache_backend == "none":
        return None
    if settings.cache_backend == "sqlite":
        return SqliteStockCache(settings.sqlite_path)
    if settings.cache_backend == "supabase":
        if not settings.supabase_url or not settings.supabase_key:
            raise ConfigurationError("SUPABASE_URL and SUPABASE_KEY must both be set")
        return SupabaseStockCache(
            settings.supabase_url,
            settings.supabase_key,
            timeout=settings.upstream_timeout,
        )
    raise ConfigurationError(f"Unknown CACHE_BACKEND: {settings.cache_backend!r}")
