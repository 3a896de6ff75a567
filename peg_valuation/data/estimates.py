"""
Forward estimate resolver.

Looks up analyst forward EPS from the secondary provider. This path only
degrades: any failure is logged and reported as "no estimate".
"""

from collections.abc import Mapping

import structlog

from peg_valuation.data.extraction import is_positive, to_float
from peg_valuation.data.interfaces import EstimatesProvider
from peg_valuation.models import ForwardEstimate

logger = structlog.get_logger(__name__)


def first_usable_estimate(records: object) -> ForwardEstimate | None:
    """First record with a reporting date and a positive average EPS estimate."""
    if not isinstance(records, list):
        return None

    for record in records:
        if not isinstance(record, Mapping):
            continue
        period = record.get("date")
        eps = to_float(record.get("eps_estimate_average"))
        if period and eps is not None and is_positive(eps):
            return ForwardEstimate(eps=eps, period=str(period))
    return None


async def resolve_forward_estimate(
    provider: EstimatesProvider | None, symbol: str
) -> ForwardEstimate | None:
    """Forward EPS for a ticker, or None when the provider has nothing usable."""
    if provider is None or not provider.is_available():
        return None

    try:
        payload = await provider.get_earnings_estimates(symbol)
    except Exception as e:
        logger.warning("forward_estimate_fetch_failed", symbol=symbol, error=str(e))
        return None

    estimate = first_usable_estimate(payload.get("estimates"))
    if estimate is None:
        logger.info("forward_estimate_unavailable", symbol=symbol)
    return estimate
