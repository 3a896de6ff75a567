"""
Valuation engine.

Runs one valuation end to end: market benchmark, security fundamentals,
forward estimate, then the synthesizer. Each valuation opens its own provider
sessions and shares no state with any other, so batches simply run many
valuations concurrently.

Two entry points per valuation:
    ValuationEngine.evaluate_strict  raises on fatal errors (price unavailable,
                                     benchmark failure, provider exceptions)
    ValuationEngine.evaluate         never raises; fatal errors become a
                                     "valuation not possible" result
"""

import asyncio
from collections.abc import AsyncIterator, Sequence
from contextlib import AsyncExitStack, asynccontextmanager

import structlog

from peg_valuation.config import Settings, config
from peg_valuation.data.alpha_vantage_fetcher import AlphaVantageFetcher
from peg_valuation.data.benchmark import MarketBenchmarkProvider, build_benchmark_provider
from peg_valuation.data.estimates import resolve_forward_estimate
from peg_valuation.data.finnhub_fetcher import FinnhubFetcher
from peg_valuation.data.fundamentals import fetch_fundamentals
from peg_valuation.data.interfaces import EstimatesProvider, PrimaryDataProvider
from peg_valuation.models import (
    Market,
    MarketBenchmark,
    PlaceholderValuationResult,
    ValuationFailure,
    ValuationMethod,
    ValuationRequest,
    ValuationResult,
)
from peg_valuation.valuation.synthesizer import (
    BETA_DAMPING,
    empty_result,
    synthesize_valuation,
)

logger = structlog.get_logger(__name__)


class ValuationEngine:
    """Fetch stages plus synthesizer, bound to one set of providers."""

    def __init__(
        self,
        primary: PrimaryDataProvider,
        benchmark_provider: MarketBenchmarkProvider,
        estimates: EstimatesProvider | None = None,
        beta_damping: float = BETA_DAMPING,
    ):
        self.primary = primary
        self.benchmark_provider = benchmark_provider
        self.estimates = estimates
        self.beta_damping = beta_damping

    async def _evaluate_with(
        self, request: ValuationRequest, benchmark: MarketBenchmark
    ) -> ValuationResult:
        fundamentals = await fetch_fundamentals(self.primary, request.symbol)

        forward_estimate = None
        if fundamentals.forward_eps is None:
            forward_estimate = await resolve_forward_estimate(
                self.estimates, request.symbol
            )

        result = synthesize_valuation(
            request.symbol,
            request.market,
            request.market_growth_rate_percent,
            benchmark,
            fundamentals,
            forward_estimate,
            beta_damping=self.beta_damping,
        )
        logger.info(
            "valuation_completed",
            symbol=request.symbol,
            market=request.market.value,
            valuation_possible=result.valuation_possible,
            fair_value=result.fair_value,
            warnings=len(result.warnings),
        )
        return result

    async def evaluate_strict(self, request: ValuationRequest) -> ValuationResult:
        benchmark = await self.benchmark_provider.get_benchmark(request.market)
        return await self._evaluate_with(request, benchmark)

    async def evaluate(self, request: ValuationRequest) -> ValuationResult:
        benchmark = None
        try:
            benchmark = await self.benchmark_provider.get_benchmark(request.market)
            return await self._evaluate_with(request, benchmark)
        except Exception as e:
            logger.warning("valuation_failed", symbol=request.symbol, error=str(e))
            result = empty_result(
                request.symbol,
                request.market,
                request.market_growth_rate_percent,
                benchmark,
                self.beta_damping,
            )
            result.warnings.append(f"Error during calculation: {e}")
            return result


@asynccontextmanager
async def open_engine(
    request: ValuationRequest, settings: Settings = config
) -> AsyncIterator[ValuationEngine]:
    """Engine with provider sessions built from the request's credentials."""
    async with AsyncExitStack() as stack:
        primary = await stack.enter_async_context(
            FinnhubFetcher(request.get_finnhub_api_key(), timeout=settings.api_timeout)
        )

        estimates = None
        alpha_vantage_key = request.get_alpha_vantage_api_key()
        if alpha_vantage_key:
            estimates = await stack.enter_async_context(
                AlphaVantageFetcher(alpha_vantage_key, timeout=settings.api_timeout)
            )

        yield ValuationEngine(
            primary=primary,
            benchmark_provider=build_benchmark_provider(settings, primary),
            estimates=estimates,
        )


async def calculate_stock_valuation(
    request: ValuationRequest, settings: Settings = config
) -> ValuationResult:
    """PEG valuation for one ticker. Never raises for data problems."""
    async with open_engine(request, settings) as engine:
        return await engine.evaluate(request)


async def _valuation_or_failure(
    symbol: str,
    market: str,
    market_growth_rate_percent: float,
    finnhub_api_key: str,
    alpha_vantage_api_key: str | None,
    settings: Settings,
) -> ValuationResult | ValuationFailure:
    try:
        request = ValuationRequest(
            symbol=symbol,
            market=Market(market.strip().upper()),
            market_growth_rate_percent=market_growth_rate_percent,
            finnhub_api_key=finnhub_api_key,
            alpha_vantage_api_key=alpha_vantage_api_key,
        )
        async with open_engine(request, settings) as engine:
            return await engine.evaluate_strict(request)
    except Exception as e:
        logger.warning("batch_item_failed", symbol=symbol, error=str(e))
        return ValuationFailure(symbol=symbol, error=str(e))


async def calculate_batch_valuations(
    symbols: Sequence[str],
    markets: Sequence[str] | None = None,
    *,
    market_growth_rate_percent: float,
    finnhub_api_key: str,
    alpha_vantage_api_key: str | None = None,
    settings: Settings = config,
) -> list[ValuationResult | ValuationFailure]:
    """
    Value many tickers concurrently, in input order.

    A failing ticker yields a ValuationFailure entry; it never affects the
    others. Markets align with symbols by index and default to US.
    """
    markets = list(markets or [])
    tasks = [
        _valuation_or_failure(
            symbol,
            (markets[index] if index < len(markets) and markets[index] else Market.US.value),
            market_growth_rate_percent,
            finnhub_api_key,
            alpha_vantage_api_key,
            settings,
        )
        for index, symbol in enumerate(symbols)
    ]
    logger.info("batch_valuation_started", count=len(tasks))
    return list(await asyncio.gather(*tasks))


# --- Placeholder methods ---


async def calculate_earnings_track_valuation(
    request: ValuationRequest,
) -> PlaceholderValuationResult:
    # TODO: project earnings over a multi-year track and discount back to today
    return PlaceholderValuationResult(
        symbol=request.symbol,
        market=request.market,
        method=ValuationMethod.EARNINGS_TRACK,
        message="Earnings Track valuation method implementation pending",
    )


async def calculate_asset_based_valuation(
    request: ValuationRequest,
) -> PlaceholderValuationResult:
    return PlaceholderValuationResult(
        symbol=request.symbol,
        market=request.market,
        method=ValuationMethod.ASSET_BASED,
        message="Asset-based valuation method implementation pending",
    )


async def calculate_valuation(
    request: ValuationRequest,
    method: ValuationMethod = ValuationMethod.PEG,
    settings: Settings = config,
) -> ValuationResult | PlaceholderValuationResult:
    """Dispatch a request to the selected valuation method."""
    if method == ValuationMethod.EARNINGS_TRACK:
        return await calculate_earnings_track_valuation(request)
    if method == ValuationMethod.ASSET_BASED:
        return await calculate_asset_based_valuation(request)
    return await calculate_stock_valuation(request, settings)
