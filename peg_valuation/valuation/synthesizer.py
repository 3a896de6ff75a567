"""
Fair value synthesizer.

Combines the market benchmark, the security fundamentals, and the forward
estimate into a ValuationResult. The computation is a fixed sequence of
stages; each stage either advances with an updated partial result or stops
it with a reason. A stopped result keeps every field filled in so far, gets
the reason appended to its warnings, and never carries a fair value.

    fair value = price * (market PEG + (beta - 1) * damping * market PEG) / stock PEG

The function is pure: identical inputs always produce identical results.
"""

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from peg_valuation.data.benchmark import market_peg
from peg_valuation.models import (
    Assumptions,
    ForwardEstimate,
    FundamentalsSnapshot,
    Market,
    MarketBenchmark,
    ValuationResult,
)

# Scales how far beta away from 1 moves the market PEG term
BETA_DAMPING = 0.7

MISSING_EPS_WARNING = (
    "Missing or invalid EPS data; valuation cannot be completed. "
    "Finnhub free API may not provide detailed EPS estimates."
)
NON_POSITIVE_GROWTH_WARNING = (
    "Growth rate is non-positive; PEG-based valuation not meaningful."
)
DERIVED_PE_WARNING = "PE calculated from price / actualEps (not from API)."
MISSING_PE_WARNING = "Cannot calculate PE; price or EPS missing."
NON_POSITIVE_PE_WARNING = "Stock PE is non-positive; PEG-based valuation not meaningful."
NON_POSITIVE_PEG_WARNING = (
    "PEG calculation resulted in non-positive value; valuation not possible."
)
MISSING_PRICE_WARNING = "Current price unavailable; valuation not possible."
NON_FINITE_FAIR_VALUE_WARNING = (
    "Fair value calculation overflowed; valuation not possible."
)


def calculate_peg(pe: float | None, growth_rate: float | None) -> float | None:
    """
    PEG ratio: PE divided by growth expressed in percent.

    Returns None instead of raising when growth is not positive or PE is
    missing, non-finite, or not positive.
    """
    if pe is None or growth_rate is None:
        return None
    if not math.isfinite(growth_rate) or growth_rate <= 0:
        return None
    if not math.isfinite(pe) or pe <= 0:
        return None
    return pe / (growth_rate * 100)


def assumption_notes(benchmark_note: str, beta_damping: float = BETA_DAMPING) -> list[str]:
    return [
        benchmark_note,
        "Growth rate calculated as estimatedEps / actualEps - 1",
        "PEG formulas follow standard definition (PE divided by earnings growth in percent)",
        (
            "Fair value = price * (market PEG + (beta - 1) * "
            f"{beta_damping:g} * market PEG) / stock PEG"
        ),
        "Stock metrics from Finnhub API (https://finnhub.io/docs/api/)",
        "Estimated EPS from Alpha Vantage (https://www.alphavantage.co/documentation/#earnings-estimates)",
    ]


def empty_result(
    symbol: str,
    market: Market,
    market_growth_rate_percent: float,
    benchmark: MarketBenchmark | None = None,
    beta_damping: float = BETA_DAMPING,
) -> ValuationResult:
    """Result skeleton holding only what is known before any fundamentals."""
    if benchmark is None:
        benchmark_note = "Market PE unavailable"
        market_pe = peg = None
    else:
        benchmark_note = benchmark.source_note
        market_pe = benchmark.market_pe
        peg = market_peg(benchmark.market_pe, market_growth_rate_percent)

    return ValuationResult(
        symbol=symbol,
        market=market,
        market_pe=market_pe,
        market_peg=peg,
        assumptions=Assumptions(
            market_growth_rate_percent=market_growth_rate_percent,
            notes=assumption_notes(benchmark_note, beta_damping),
        ),
    )


# --- Stages ---


@dataclass(frozen=True)
class Advance:
    result: ValuationResult


@dataclass(frozen=True)
class Stopped:
    result: ValuationResult
    reason: str


StageOutcome = Advance | Stopped


@dataclass(frozen=True)
class SynthesisInputs:
    price: float | None
    beta: float
    actual_eps: float | None
    estimated_eps: float | None
    reported_pe: float | None
    market_peg: float
    beta_damping: float = BETA_DAMPING


Stage = Callable[[ValuationResult, SynthesisInputs], StageOutcome]


def _update(result: ValuationResult, warning: str | None = None, **fields) -> ValuationResult:
    if warning is not None:
        fields["warnings"] = [*result.warnings, warning]
    return result.model_copy(update=fields)


def _finite(value: float | None) -> bool:
    return value is not None and math.isfinite(value)


def check_eps(result: ValuationResult, inputs: SynthesisInputs) -> StageOutcome:
    if not _finite(inputs.actual_eps) or not _finite(inputs.estimated_eps):
        return Stopped(result, MISSING_EPS_WARNING)
    return Advance(_update(result, has_forward_eps=True))


def compute_growth(result: ValuationResult, inputs: SynthesisInputs) -> StageOutcome:
    if inputs.actual_eps == 0:
        return Stopped(result, NON_POSITIVE_GROWTH_WARNING)

    growth_rate = inputs.estimated_eps / inputs.actual_eps - 1
    if not math.isfinite(growth_rate):
        return Stopped(result, NON_POSITIVE_GROWTH_WARNING)
    result = _update(result, growth_rate=growth_rate)
    if not growth_rate > 0:
        return Stopped(result, NON_POSITIVE_GROWTH_WARNING)
    return Advance(result)


def resolve_stock_pe(result: ValuationResult, inputs: SynthesisInputs) -> StageOutcome:
    if inputs.reported_pe is not None:
        return Advance(_update(result, stock_pe=inputs.reported_pe))
    if inputs.price and inputs.actual_eps:
        return Advance(
            _update(
                result,
                DERIVED_PE_WARNING,
                stock_pe=inputs.price / inputs.actual_eps,
            )
        )
    return Stopped(result, MISSING_PE_WARNING)


def check_stock_pe(result: ValuationResult, inputs: SynthesisInputs) -> StageOutcome:
    if not result.stock_pe > 0:
        return Stopped(result, NON_POSITIVE_PE_WARNING)
    return Advance(result)


def compute_stock_peg(result: ValuationResult, inputs: SynthesisInputs) -> StageOutcome:
    stock_peg = calculate_peg(result.stock_pe, result.growth_rate)
    if stock_peg is None or not math.isfinite(stock_peg) or stock_peg <= 0:
        return Stopped(result, NON_POSITIVE_PEG_WARNING)
    return Advance(_update(result, stock_peg=stock_peg))


def compute_fair_value(result: ValuationResult, inputs: SynthesisInputs) -> StageOutcome:
    if not _finite(inputs.price):
        return Stopped(result, MISSING_PRICE_WARNING)

    peg = inputs.market_peg
    adjusted_market_peg = peg + (inputs.beta - 1) * inputs.beta_damping * peg
    fair_value = inputs.price * adjusted_market_peg / result.stock_peg
    if not math.isfinite(fair_value):
        return Stopped(result, NON_FINITE_FAIR_VALUE_WARNING)
    return Advance(_update(result, fair_value=fair_value, valuation_possible=True))


STAGES: tuple[Stage, ...] = (
    check_eps,
    compute_growth,
    resolve_stock_pe,
    check_stock_pe,
    compute_stock_peg,
    compute_fair_value,
)


def run_stages(
    result: ValuationResult, inputs: SynthesisInputs, stages: Sequence[Stage] = STAGES
) -> ValuationResult:
    for stage in stages:
        outcome = stage(result, inputs)
        if isinstance(outcome, Stopped):
            return _update(
                outcome.result,
                outcome.reason,
                fair_value=None,
                valuation_possible=False,
            )
        result = outcome.result
    return result


def synthesize_valuation(
    symbol: str,
    market: Market,
    market_growth_rate_percent: float,
    benchmark: MarketBenchmark,
    fundamentals: FundamentalsSnapshot,
    forward_estimate: ForwardEstimate | None = None,
    beta_damping: float = BETA_DAMPING,
) -> ValuationResult:
    """Build the full valuation result from already-fetched data."""
    result = empty_result(
        symbol, market, market_growth_rate_percent, benchmark, beta_damping
    )

    warnings = list(fundamentals.warnings)
    estimated_eps = fundamentals.forward_eps
    if estimated_eps is None and forward_estimate is not None:
        estimated_eps = forward_estimate.eps
        warnings.append(
            f"Estimated EPS from Alpha Vantage for period {forward_estimate.period}"
        )

    result = _update(
        result,
        beta=fundamentals.beta,
        actual_eps=fundamentals.trailing_eps,
        estimated_eps=estimated_eps,
        current_price=fundamentals.price,
        beta_fallback_used=fundamentals.beta_defaulted,
        warnings=warnings,
    )

    inputs = SynthesisInputs(
        price=fundamentals.price,
        beta=fundamentals.beta,
        actual_eps=fundamentals.trailing_eps,
        estimated_eps=estimated_eps,
        reported_pe=fundamentals.trailing_pe,
        market_peg=result.market_peg,
        beta_damping=beta_damping,
    )
    return run_stages(result, inputs)
