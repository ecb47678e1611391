"""
FastAPI entry point for the stock data service.

This module is the Composition Root: it builds Settings from the environment
(plus an optional AWS Secrets Manager secret), wires the vendor and cache
adapters selected there, and hands them to GetStockAnalysisUseCase. Wiring
happens on first request so the app can start without credentials; a missing
key surfaces as a 500 "API configuration error" response.

Run locally:
    uvicorn src.infrastructure.entrypoints.fastapi_app:app --reload --port 8000
"""

import dataclasses
import logging
import os
from datetime import timedelta
from functools import lru_cache
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

load_dotenv()

from src.application.use_cases.get_stock_analysis import GetStockAnalysisUseCase
from src.domain.entities.stock_series import StockAnalysis
from src.domain.errors import (
    USER_HINT,
    ConfigurationError,
    InvalidRequestError,
    InvalidSymbolError,
    StockDataError,
    UpstreamUnavailableError,
)
from src.infrastructure.cache.factory import build_stock_cache
from src.infrastructure.config.settings import Settings
from src.infrastructure.secrets.secrets_manager_adapter import SecretsManagerAdapter
from src.infrastructure.stock_data.factory import build_fundamentals_source, build_price_source

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Composition Root
# ---------------------------------------------------------------------------


def load_settings(environ: Optional[dict] = None) -> Settings:
    env = dict(os.environ if environ is None else environ)
    secret_id = env.get("STOCK_SECRET_ARN")
    if secret_id:
        env = SecretsManagerAdapter().overlay(secret_id, env)
    return Settings.from_env(env)


def build_use_case(settings: Settings) -> GetStockAnalysisUseCase:
    return GetStockAnalysisUseCase(
        price_source=build_price_source(settings),
        fundamentals_source=build_fundamentals_source(settings),
        cache=build_stock_cache(settings),
        upstream_timeout=settings.upstream_timeout,
        cache_max_age=timedelta(hours=settings.cache_max_age_hours),
    )


@lru_cache(maxsize=1)
def get_use_case() -> GetStockAnalysisUseCase:
    """FastAPI dependency: the wired use case, built once per process."""
    settings = load_settings()
    logging.getLogger().setLevel(settings.log_level)
    logger.info(
        "Using %s prices, %s fundamentals, %s cache",
        settings.price_vendor,
        settings.fundamentals_vendor,
        settings.cache_backend,
    )
    return build_use_case(settings)


def serialize_analysis(analysis: StockAnalysis) -> dict[str, Any]:
    payload = dataclasses.asdict(analysis)
    payload["fundamentals"] = [
        {
            **dataclasses.asdict(record),
            "label": record.label,
            "display_date": record.display_date,
        }
        for record in analysis.fundamentals
    ]
    return jsonable_encoder(payload)


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(title="Stock Fundamentals API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


class StockDataRequest(BaseModel):
    symbol: str | None = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, "hint": USER_HINT})


@app.exception_handler(RequestValidationError)
async def on_bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(400, "Symbol is required")


@app.exception_handler(InvalidRequestError)
async def on_invalid_request(request: Request, exc: InvalidRequestError) -> JSONResponse:
    return _error(400, str(exc))


@app.exception_handler(InvalidSymbolError)
async def on_invalid_symbol(request: Request, exc: InvalidSymbolError) -> JSONResponse:
    return _error(404, f"No data found for symbol {exc.symbol}")


@app.exception_handler(UpstreamUnavailableError)
async def on_upstream_unavailable(request: Request, exc: UpstreamUnavailableError) -> JSONResponse:
    logger.error("Upstream failure: %s", exc)
    return _error(502, f"Failed to fetch stock data for {exc.symbol}")


@app.exception_handler(ConfigurationError)
async def on_configuration_error(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Configuration error: %s", exc)
    return _error(500, "API configuration error")


@app.exception_handler(StockDataError)
async def on_stock_data_error(request: Request, exc: StockDataError) -> JSONResponse:
    logger.error("Unhandled stock data error: %s", exc)
    return _error(500, "Failed to process stock data")


@app.exception_handler(Exception)
async def on_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unexpected error while serving %s", request.url.path, exc_info=exc)
    return _error(500, "Failed to process stock data")


@app.post("/stock-data")
async def stock_data(
    body: StockDataRequest,
    use_case: GetStockAnalysisUseCase = Depends(get_use_case),
):
    """Return prices, fundamentals, the merged chart series and derived metrics."""
    if not body.symbol or not body.symbol.strip():
        return _error(400, "Symbol is required")
    analysis = await use_case.execute(body.symbol)
    logger.info(
        "Served %s: %d prices, %d quarters (%s)",
        analysis.symbol,
        len(analysis.prices),
        len(analysis.fundamentals),
        analysis.source,
    )
    return serialize_analysis(analysis)


@app.get("/health")
async def health():
    return {"status": "ok"}
