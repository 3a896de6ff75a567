"""Valuation, health, and documentation endpoints."""

from __future__ import annotations

import math
import time
from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, Query, Request

from peg_valuation import __version__
from peg_valuation.api.exceptions import BadRequestError
from peg_valuation.config import config
from peg_valuation.models import Market, ValuationMethod, ValuationRequest
from peg_valuation.valuation.engine import calculate_batch_valuations, calculate_valuation

router = APIRouter()

logger = structlog.get_logger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def resolve_finnhub_key(query_key: str | None) -> str:
    """Query key first, then the configured FINNHUB_API_KEY."""
    return query_key or config.get_finnhub_api_key()


def resolve_alpha_vantage_key(query_key: str | None) -> str | None:
    return query_key or config.get_alpha_vantage_api_key() or None


def parse_growth_rate(raw: str | None) -> float:
    """Positive growth rate in percent, or the configured default when absent."""
    if raw is None or raw == "":
        return config.market_growth_rate_percent
    try:
        rate = float(raw)
    except ValueError:
        rate = math.nan
    if not math.isfinite(rate) or rate <= 0:
        raise BadRequestError(
            "marketGrowthRatePercent must be a positive number",
            {"received": raw},
        )
    return rate


def parse_market(raw: str | None) -> Market:
    """Market selector, case-insensitive, matching the batch path."""
    if not raw or not raw.strip():
        return Market.US
    try:
        return Market(raw.strip().upper())
    except ValueError:
        raise BadRequestError(
            'Invalid market. Must be "US" or "HK"', {"received": raw}
        ) from None


def parse_method(raw: str | None) -> ValuationMethod:
    if not raw:
        return ValuationMethod.PEG
    try:
        return ValuationMethod(raw)
    except ValueError:
        allowed = ", ".join(m.value for m in ValuationMethod)
        raise BadRequestError(
            f"Invalid method. Must be one of: {allowed}", {"received": raw}
        ) from None


def split_csv(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",")]


@router.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    return {
        "status": "healthy",
        "timestamp": _now_iso(),
        "uptime": time.monotonic() - request.app.state.started_at,
    }


@router.get("/api/docs")
async def api_docs() -> dict[str, Any]:
    """Self-description of the service endpoints."""
    return {
        "service": "PEG Stock Valuation Microservice",
        "version": __version__,
        "endpoints": {
            "GET /api/valuation": {
                "description": "Calculate fair value of a stock using PEG-based valuation",
                "query": {
                    "required": ["symbol"],
                    "optional": [
                        "finnhubApiKey",
                        "alphaVantageApiKey",
                        "market",
                        "marketGrowthRatePercent",
                        "method",
                    ],
                    "notes": [
                        "finnhubApiKey: provide in query OR set FINNHUB_API_KEY environment variable",
                        "alphaVantageApiKey: provide in query OR set ALPHA_VANTAGE_API_KEY environment variable",
                        "market: 'US' or 'HK' (default 'US')",
                        "method: 'peg' (default), 'earnings_track', 'asset_based'",
                    ],
                    "example": {
                        "symbol": "AAPL",
                        "market": "US",
                        "marketGrowthRatePercent": config.market_growth_rate_percent,
                    },
                },
                "response": {
                    "symbol": "string",
                    "market": "string",
                    "fairValue": "number | null",
                    "currentPrice": "number",
                    "beta": "number",
                    "actualEps": "number",
                    "estimatedEps": "number",
                    "stockPe": "number",
                    "stockPeg": "number",
                    "growthRate": "number",
                    "marketPe": "number",
                    "marketPeg": "number",
                    "valuationPossible": "boolean",
                    "hasForwardEps": "boolean",
                    "betaFallbackUsed": "boolean",
                    "warnings": "string[]",
                    "assumptions": "object",
                },
            },
            "GET /api/valuation/batch": {
                "description": "Value several stocks in parallel",
                "query": {
                    "required": ["symbols"],
                    "optional": [
                        "markets",
                        "finnhubApiKey",
                        "alphaVantageApiKey",
                        "marketGrowthRatePercent",
                    ],
                    "notes": [
                        "symbols: comma-separated, e.g. 'AAPL,MSFT,GOOGL'",
                        "markets: comma-separated, aligned with symbols (default US)",
                    ],
                },
                "response": {
                    "processingTime": "string",
                    "count": "number",
                    "results": "object[]",
                },
            },
            "GET /health": {
                "description": "Service health check",
                "response": {"status": "string", "timestamp": "string", "uptime": "number"},
            },
            "GET /api/docs": {"description": "API documentation (this endpoint)"},
        },
    }


@router.get("/api/valuation")
async def get_valuation(
    symbol: str | None = None,
    market: str | None = None,
    market_growth_rate_percent: str | None = Query(
        default=None, alias="marketGrowthRatePercent"
    ),
    finnhub_api_key: str | None = Query(default=None, alias="finnhubApiKey"),
    alpha_vantage_api_key: str | None = Query(default=None, alias="alphaVantageApiKey"),
    method: str | None = None,
) -> dict[str, Any]:
    primary_key = resolve_finnhub_key(finnhub_api_key)
    symbol = (symbol or "").strip()

    if not symbol or not primary_key:
        if finnhub_api_key:
            key_status = "provided in query"
        elif config.get_finnhub_api_key():
            key_status = "using environment variable"
        else:
            key_status = "missing"
        raise BadRequestError(
            "Missing required fields: symbol is required, and finnhubApiKey must be "
            "provided in query or FINNHUB_API_KEY environment variable",
            {
                "receivedFields": {
                    "symbol": "provided" if symbol else "missing",
                    "finnhubApiKey": key_status,
                }
            },
        )

    request = ValuationRequest(
        symbol=symbol,
        market=parse_market(market),
        market_growth_rate_percent=parse_growth_rate(market_growth_rate_percent),
        finnhub_api_key=primary_key,
        alpha_vantage_api_key=resolve_alpha_vantage_key(alpha_vantage_api_key),
    )
    result = await calculate_valuation(request, parse_method(method))
    return result.to_json_dict()


@router.get("/api/valuation/batch")
async def get_batch_valuation(
    symbols: str | None = None,
    markets: str | None = None,
    market_growth_rate_percent: str | None = Query(
        default=None, alias="marketGrowthRatePercent"
    ),
    finnhub_api_key: str | None = Query(default=None, alias="finnhubApiKey"),
    alpha_vantage_api_key: str | None = Query(default=None, alias="alphaVantageApiKey"),
) -> dict[str, Any]:
    primary_key = resolve_finnhub_key(finnhub_api_key)
    if not primary_key or not symbols:
        raise BadRequestError(
            "Missing required fields: symbols query parameter is required, and "
            "finnhubApiKey must be provided in query or FINNHUB_API_KEY environment variable"
        )

    symbol_list = [s.upper() for s in split_csv(symbols) if s]
    if not symbol_list:
        raise BadRequestError("symbols cannot be empty")

    results = await calculate_batch_valuations(
        symbol_list,
        split_csv(markets),
        market_growth_rate_percent=parse_growth_rate(market_growth_rate_percent),
        finnhub_api_key=primary_key,
        alpha_vantage_api_key=resolve_alpha_vantage_key(alpha_vantage_api_key),
    )

    return {
        "processingTime": _now_iso(),
        "count": len(results),
        "results": [item.to_json_dict() for item in results],
    }
