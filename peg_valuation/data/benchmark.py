"""
Market benchmark resolver.

Supplies the reference market PE for a market. The default provider returns
a fixed constant; LiveBenchmarkProvider queries a broad-market ETF proxy on
the primary provider instead. Both sit behind MarketBenchmarkProvider so the
synthesizer never knows which one was used.
"""

from abc import ABC, abstractmethod

import structlog

from peg_valuation.config import Settings
from peg_valuation.data.extraction import MARKET_PE_CHAIN
from peg_valuation.data.interfaces import PrimaryDataProvider
from peg_valuation.exceptions import BenchmarkError, ProviderError
from peg_valuation.models import Market, MarketBenchmark

logger = structlog.get_logger(__name__)

DEFAULT_MARKET_PE = 29.0

ETF_PROXIES = {
    Market.US: "SPY",
    Market.HK: "2800",
}


def market_peg(market_pe: float, growth_rate_percent: float) -> float:
    """Market PEG from market PE and the assumed market growth in percent."""
    return market_pe / growth_rate_percent


class MarketBenchmarkProvider(ABC):
    @abstractmethod
    async def get_benchmark(self, market: Market) -> MarketBenchmark:
        """Return a positive market PE for the market, or raise BenchmarkError."""
        pass


class FixedBenchmarkProvider(MarketBenchmarkProvider):
    """Constant market PE, independent of market."""

    def __init__(self, market_pe: float = DEFAULT_MARKET_PE):
        if not market_pe > 0:
            raise ValueError(f"market_pe must be positive, got {market_pe}")
        self.market_pe = market_pe

    async def get_benchmark(self, market: Market) -> MarketBenchmark:
        return MarketBenchmark(
            market=market,
            market_pe=self.market_pe,
            source_note=f"Market PE fixed at {self.market_pe:g} (live ETF lookup disabled)",
        )


class LiveBenchmarkProvider(MarketBenchmarkProvider):
    """Market PE from the ETF proxy's metrics on the primary provider."""

    def __init__(self, provider: PrimaryDataProvider):
        self.provider = provider

    async def get_benchmark(self, market: Market) -> MarketBenchmark:
        etf_symbol = ETF_PROXIES[market]
        try:
            payload = await self.provider.get_metrics(etf_symbol)
        except ProviderError as e:
            raise BenchmarkError(
                f"Failed to get market PE for {market.value}: {e}"
            ) from e

        metrics = payload.get("metric")
        if not isinstance(metrics, dict):
            metrics = {}
        pe = MARKET_PE_CHAIN.first_valid(metrics)
        if pe is None:
            raw = metrics.get("peNormalizedAnnual", metrics.get("peAnnual"))
            raise BenchmarkError(
                f"Failed to get market PE for {market.value}: "
                f"Invalid PE ratio for {etf_symbol}: {raw}"
            )

        logger.info("market_pe_resolved", market=market.value, etf=etf_symbol, pe=pe)
        return MarketBenchmark(
            market=market,
            market_pe=pe,
            source_note=f"Market PE obtained from {etf_symbol} ETF via Finnhub",
        )


def build_benchmark_provider(
    settings: Settings, primary: PrimaryDataProvider
) -> MarketBenchmarkProvider:
    """Benchmark provider selected by BENCHMARK_MODE."""
    if settings.benchmark_mode == "live":
        return LiveBenchmarkProvider(primary)
    return FixedBenchmarkProvider(settings.fixed_market_pe)
