import json
import os

import pytest

from src.domain.errors import ConfigurationError
from src.infrastructure.cache.factory import build_stock_cache
from src.infrastructure.cache.sqlite_cache import SqliteStockCache
from src.infrastructure.config.settings import Settings
from src.infrastructure.secrets.secrets_manager_adapter import SecretsManagerAdapter
from src.infrastructure.stock_data.factory import build_fundamentals_source, build_price_source
from src.infrastructure.stock_data.finnhub_adapter import FinnhubFundamentalsSource
from src.infrastructure.stock_data.fmp_adapter import FmpPriceSource
from src.infrastructure.stock_data.yfinance_adapter import YFinancePriceSource


def test_defaults_from_empty_environment():
    settings = Settings.from_env({})
    assert settings.price_vendor == "fmp"
    assert settings.fundamentals_vendor == "fmp"
    assert settings.cache_backend == "none"
    assert settings.cache_max_age_hours == 24.0
    assert settings.upstream_timeout == 10.0
    assert settings.fmp_api_key is None


def test_values_are_read_from_environment():
    settings = Settings.from_env(
        {
            "PRICE_VENDOR": "YFinance",
            "FUNDAMENTALS_VENDOR": "finnhub",
            "FINNHUB_API_KEY": "fh",
            "UPSTREAM_TIMEOUT_SECONDS": "2.5",
            "FUNDAMENTALS_LIMIT": "8",
            "LOG_LEVEL": "debug",
        }
    )
    assert settings.price_vendor == "yfinance"
    assert settings.upstream_timeout == 2.5
    assert settings.fundamentals_limit == 8
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    "environ",
    [
        {"PRICE_VENDOR": "bloomberg"},
        {"FUNDAMENTALS_VENDOR": "excel"},
        {"CACHE_BACKEND": "redis"},
        {"UPSTREAM_TIMEOUT_SECONDS": "soon"},
    ],
)
def test_invalid_settings_raise_configuration_error(environ):
    with pytest.raises(ConfigurationError):
        Settings.from_env(environ)


def test_vendor_selection():
    settings = Settings(
        price_vendor="fmp",
        fundamentals_vendor="finnhub",
        fmp_api_key="k",
        finnhub_api_key="t",
    )
    assert isinstance(build_price_source(settings), FmpPriceSource)
    assert isinstance(build_fundamentals_source(settings), FinnhubFundamentalsSource)
    assert isinstance(build_price_source(Settings(price_vendor="yfinance")), YFinancePriceSource)


def test_missing_api_key_is_configuration_error():
    with pytest.raises(ConfigurationError, match="FMP_API_KEY"):
        build_price_source(Settings())
    with pytest.raises(ConfigurationError, match="FINNHUB_API_KEY"):
        build_fundamentals_source(Settings(fundamentals_vendor="finnhub"))


def test_cache_backend_selection(tmp_path):
    assert build_stock_cache(Settings()) is None
    sqlite = build_stock_cache(Settings(cache_backend="sqlite", sqlite_path=str(tmp_path / "c.db")))
    assert isinstance(sqlite, SqliteStockCache)
    with pytest.raises(ConfigurationError):
        build_stock_cache(Settings(cache_backend="supabase"))


class FakeSecretsClient:
    def __init__(self, secret: dict) -> None:
        self.secret = secret
        self.requested = []

    def get_secret_value(self, SecretId: str) -> dict:
        self.requested.append(SecretId)
        return {"SecretString": json.dumps(self.secret)}


def test_secret_overlays_environment_without_touching_os_environ(monkeypatch):
    monkeypatch.delenv("FMP_API_KEY", raising=False)
    client = FakeSecretsClient({"FMP_API_KEY": "from-secret", "FUNDAMENTALS_LIMIT": 12})
    adapter = SecretsManagerAdapter(client=client)

    env = adapter.overlay("arn:aws:secretsmanager:stock", {"PRICE_VENDOR": "fmp"})
    settings = Settings.from_env(env)

    assert client.requested == ["arn:aws:secretsmanager:stock"]
    assert settings.fmp_api_key == "from-secret"
    assert settings.fundamentals_limit == 12
    assert "FMP_API_KEY" not in os.environ


def test_non_object_secret_is_configuration_error():
    adapter = SecretsManagerAdapter(client=FakeSecretsClient(["not", "a", "dict"]))
    with pytest.raises(ConfigurationError):
        adapter.get_secret("arn")
