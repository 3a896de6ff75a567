"""
Security fundamentals fetcher.

Builds a FundamentalsSnapshot (price, PE, trailing EPS, beta) for one ticker
from the primary provider. Only the price is mandatory: every other field
has its own fallback and a failed sub-fetch is recorded as a warning.

Fallback order:
    price        quote 'c'                                   (fatal if missing)
    PE           peTTM -> peExclExtraTTM -> peAnnual         (non-positive dropped)
    trailing EPS epsTTM -> epsExclExtraItemsTTM -> epsAnnual -> reported net income
    beta         metric 'beta' -> 1.0
"""

from collections.abc import Mapping
from typing import Any

import structlog

from peg_valuation.data.extraction import (
    EPS_CHAIN,
    PE_CHAIN,
    is_non_negative,
    is_non_zero,
    is_positive,
    to_float,
)
from peg_valuation.data.interfaces import PrimaryDataProvider
from peg_valuation.exceptions import PriceUnavailableError, ProviderError
from peg_valuation.models import FundamentalsSnapshot

logger = structlog.get_logger(__name__)

DEFAULT_BETA = 1.0
NET_INCOME_CONCEPT = "NetIncomeLoss"

BETA_INVALID_WARNING = "Beta value was invalid; using fallback."
BETA_DEFAULT_WARNING = f"Beta value unavailable; using default beta = {DEFAULT_BETA}"
NET_INCOME_EPS_WARNING = (
    "Actual EPS derived from reported net income (not per share basis)."
)


async def fetch_price(provider: PrimaryDataProvider, symbol: str) -> float:
    """Current price from the quote endpoint. Any failure is fatal."""
    try:
        quote = await provider.get_quote(symbol)
    except ProviderError as e:
        raise PriceUnavailableError(
            symbol, f"Failed to get quote for {symbol}: {e}"
        ) from e

    price = to_float(quote.get("c"))
    if price is None or not is_positive(price):
        raise PriceUnavailableError(
            symbol,
            f"Failed to get quote for {symbol}: Invalid price for {symbol}: {quote.get('c')}",
        )
    return price


def read_beta(metrics: Mapping[str, Any], warnings: list[str]) -> float | None:
    """Validated beta from a metrics payload, or None when absent or invalid."""
    raw = metrics.get("beta")
    if raw is None:
        return None

    beta = to_float(raw)
    if beta is None or not is_non_negative(beta):
        warnings.append(BETA_INVALID_WARNING)
        return None
    return beta


def net_income_from_filing(filing: Mapping[str, Any]) -> float | None:
    """
    Net income from one reported filing's income statement.

    Finnhub serves 'report.ic' either as a mapping keyed by concept or as a
    list of {concept, value} items with a taxonomy prefix
    (e.g. 'us-gaap_NetIncomeLoss').
    """
    report = filing.get("report")
    if not isinstance(report, Mapping):
        return None

    income_statement = report.get("ic")
    value: Any = None
    if isinstance(income_statement, Mapping):
        value = income_statement.get(NET_INCOME_CONCEPT)
    elif isinstance(income_statement, list):
        for item in income_statement:
            if isinstance(item, Mapping) and str(item.get("concept", "")).endswith(
                NET_INCOME_CONCEPT
            ):
                value = item.get("value")
                break

    net_income = to_float(value)
    if net_income is None or not is_non_zero(net_income):
        return None
    return net_income


async def fetch_fundamentals(
    provider: PrimaryDataProvider, symbol: str
) -> FundamentalsSnapshot:
    """
    Fetch price, PE, trailing EPS, and beta for a ticker.

    Raises:
        PriceUnavailableError: If the current price cannot be obtained.
    """
    warnings: list[str] = []
    pe: float | None = None
    actual_eps: float | None = None
    beta: float | None = None

    price = await fetch_price(provider, symbol)

    try:
        metrics_payload = await provider.get_metrics(symbol)
        metrics = metrics_payload.get("metric")
        if isinstance(metrics, Mapping):
            pe = PE_CHAIN.first_valid(metrics)
            actual_eps = EPS_CHAIN.first_valid(metrics)
            beta = read_beta(metrics, warnings)
    except ProviderError as e:
        logger.warning("metrics_fetch_failed", symbol=symbol, error=str(e))
        warnings.append(
            f"Could not fetch metrics; some data may be unavailable: {e}"
        )

    # Zero EPS falls through to the filings as well
    if not actual_eps:
        try:
            financials = await provider.get_financials_reported(symbol)
            filings = financials.get("data")
            if isinstance(filings, list) and filings and isinstance(filings[0], Mapping):
                net_income = net_income_from_filing(filings[0])
                if net_income is not None:
                    actual_eps = net_income
                    warnings.append(NET_INCOME_EPS_WARNING)
        except ProviderError as e:
            logger.warning("financials_fetch_failed", symbol=symbol, error=str(e))
            warnings.append(f"Could not fetch financials: {e}")

    beta_defaulted = beta is None
    if beta_defaulted:
        beta = DEFAULT_BETA
        warnings.append(BETA_DEFAULT_WARNING)

    logger.debug(
        "fundamentals_fetched",
        symbol=symbol,
        price=price,
        pe=pe,
        actual_eps=actual_eps,
        beta=beta,
        beta_defaulted=beta_defaulted,
    )

    return FundamentalsSnapshot(
        price=price,
        beta=beta,
        trailing_eps=actual_eps,
        trailing_pe=pe,
        beta_defaulted=beta_defaulted,
        warnings=tuple(warnings),
    )
