"""
Tests for the market benchmark resolver.

Covers the fixed constant, the live ETF lookup and provider selection.
"""

from unittest.mock import MagicMock

import pytest

from peg_valuation.data.benchmark import (
    DEFAULT_MARKET_PE,
    FixedBenchmarkProvider,
    LiveBenchmarkProvider,
    build_benchmark_provider,
    market_peg,
)
from peg_valuation.exceptions import BenchmarkError, ProviderError
from peg_valuation.models import Market


class TestMarketPeg:
    """Test the market PEG helper."""

    def test_default_constants(self):
        """Test market PEG for a PE of 29 and 13.5% growth."""
        assert market_peg(29.0, 13.5) == pytest.approx(2.148148, abs=1e-6)

    def test_uses_growth_rate(self):
        """Test that market PEG divides by the given growth rate."""
        assert market_peg(29.0, 10.0) == pytest.approx(2.9)


class TestFixedBenchmarkProvider:
    """Test the fixed market PE provider."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("market", list(Market))
    async def test_constant_for_every_market(self, market):
        """Test that every market gets the same fixed PE."""
        benchmark = await FixedBenchmarkProvider().get_benchmark(market)

        assert benchmark.market is market
        assert benchmark.market_pe == DEFAULT_MARKET_PE == 29.0
        assert "fixed at 29" in benchmark.source_note

    def test_rejects_non_positive_pe(self):
        """Test that a non-positive fixed PE is refused."""
        with pytest.raises(ValueError):
            FixedBenchmarkProvider(market_pe=0)


class TestLiveBenchmarkProvider:
    """Test the ETF proxy market PE provider."""

    @pytest.mark.asyncio
    async def test_us_uses_spy(self, fake_primary):
        """Test that the US benchmark reads SPY metrics."""
        provider = fake_primary(metrics={"metric": {"peNormalizedAnnual": 24.7}})

        benchmark = await LiveBenchmarkProvider(provider).get_benchmark(Market.US)

        assert benchmark.market_pe == 24.7
        assert provider.calls == [("metrics", "SPY")]
        assert "SPY" in benchmark.source_note

    @pytest.mark.asyncio
    async def test_hk_uses_tracker_fund(self, fake_primary):
        """Test that the HK benchmark reads 2800 and falls back to peAnnual."""
        provider = fake_primary(metrics={"metric": {"peAnnual": 11.2}})

        benchmark = await LiveBenchmarkProvider(provider).get_benchmark(Market.HK)

        assert benchmark.market_pe == 11.2
        assert provider.calls == [("metrics", "2800")]

    @pytest.mark.asyncio
    async def test_non_positive_pe_is_an_error(self, fake_primary):
        """Test that a non-positive ETF PE raises BenchmarkError."""
        provider = fake_primary(metrics={"metric": {"peNormalizedAnnual": -3}})

        with pytest.raises(BenchmarkError, match="Invalid PE ratio for SPY: -3"):
            await LiveBenchmarkProvider(provider).get_benchmark(Market.US)

    @pytest.mark.asyncio
    async def test_provider_failure_is_an_error(self, fake_primary):
        """Test that a provider failure raises BenchmarkError."""
        provider = fake_primary(errors={"metrics": ProviderError("API returned status 403")})

        with pytest.raises(BenchmarkError, match="Failed to get market PE for US"):
            await LiveBenchmarkProvider(provider).get_benchmark(Market.US)


class TestBuildBenchmarkProvider:
    """Test provider selection by BENCHMARK_MODE."""

    def test_fixed_mode(self, fake_primary):
        """Test that fixed mode uses the configured PE."""
        settings = MagicMock(benchmark_mode="fixed", fixed_market_pe=25.0)

        provider = build_benchmark_provider(settings, fake_primary())

        assert isinstance(provider, FixedBenchmarkProvider)
        assert provider.market_pe == 25.0

    def test_live_mode(self, fake_primary):
        """Test that live mode wraps the primary provider."""
        primary = fake_primary()
        settings = MagicMock(benchmark_mode="live")

        provider = build_benchmark_provider(settings, primary)

        assert isinstance(provider, LiveBenchmarkProvider)
        assert provider.provider is primary
