"""
Tests for the security fundamentals fetcher.

Covers the price gate, the metric fallback chains, the net income
fallback for EPS, and beta defaulting.
"""

import pytest

from peg_valuation.data.fundamentals import (
    BETA_DEFAULT_WARNING,
    BETA_INVALID_WARNING,
    NET_INCOME_EPS_WARNING,
    fetch_fundamentals,
    fetch_price,
    net_income_from_filing,
)
from peg_valuation.exceptions import PriceUnavailableError, ProviderError


class TestFetchPrice:
    """Test the price gate."""

    @pytest.mark.asyncio
    async def test_valid_price(self, fake_primary):
        """Test that a positive quote price is returned."""
        assert await fetch_price(fake_primary(quote={"c": 150.25}), "AAPL") == 150.25

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quote", [{"c": 0}, {"c": -1.5}, {"c": None}, {}])
    async def test_invalid_price_is_fatal(self, fake_primary, quote):
        """Test that a missing or non-positive price raises."""
        with pytest.raises(PriceUnavailableError, match="Invalid price for AAPL"):
            await fetch_price(fake_primary(quote=quote), "AAPL")

    @pytest.mark.asyncio
    async def test_provider_failure_is_fatal(self, fake_primary):
        """Test that a quote failure raises PriceUnavailableError."""
        provider = fake_primary(errors={"quote": ProviderError("API returned status 401")})

        with pytest.raises(PriceUnavailableError) as exc_info:
            await fetch_price(provider, "AAPL")

        assert str(exc_info.value) == (
            "Failed to get quote for AAPL: API returned status 401"
        )
        assert exc_info.value.symbol == "AAPL"


class TestNetIncomeFromFiling:
    """Test net income extraction from a reported filing."""

    def test_mapping_income_statement(self):
        """Test an income statement keyed by concept."""
        filing = {"report": {"ic": {"NetIncomeLoss": 93736000000}}}
        assert net_income_from_filing(filing) == 93736000000

    def test_list_income_statement_with_taxonomy_prefix(self):
        """Test an income statement given as a list of concepts."""
        filing = {
            "report": {
                "ic": [
                    {"concept": "us-gaap_Revenues", "value": 391035000000},
                    {"concept": "us-gaap_NetIncomeLoss", "value": 93736000000},
                ]
            }
        }
        assert net_income_from_filing(filing) == 93736000000

    @pytest.mark.parametrize(
        "filing",
        [
            {},
            {"report": None},
            {"report": {"ic": {}}},
            {"report": {"ic": {"NetIncomeLoss": 0}}},
            {"report": {"ic": "garbage"}},
        ],
    )
    def test_missing_or_zero(self, filing):
        """Test that missing or zero net income gives None."""
        assert net_income_from_filing(filing) is None


class TestFetchFundamentals:
    """Test the full fundamentals fetch against a fake provider."""

    @pytest.mark.asyncio
    async def test_healthy_metrics(self, fake_primary, aapl_metrics):
        """Test a complete metrics payload without fallbacks."""
        provider = fake_primary(metrics=aapl_metrics)

        snapshot = await fetch_fundamentals(provider, "AAPL")

        assert snapshot.price == 150.25
        assert snapshot.trailing_pe == 28.3
        assert snapshot.trailing_eps == 5.31
        assert snapshot.beta == 1.15
        assert snapshot.beta_defaulted is False
        assert snapshot.warnings == ()
        # Filings are only consulted when EPS is missing
        assert ("financials", "AAPL") not in provider.calls

    @pytest.mark.asyncio
    async def test_beta_missing_defaults_to_one(self, fake_primary, aapl_metrics):
        """Test that a missing beta defaults to 1.0 with a warning."""
        del aapl_metrics["metric"]["beta"]

        snapshot = await fetch_fundamentals(fake_primary(metrics=aapl_metrics), "AAPL")

        assert snapshot.beta == 1.0
        assert snapshot.beta_defaulted is True
        assert snapshot.warnings == (BETA_DEFAULT_WARNING,)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw_beta", [-0.4, "n/a"])
    async def test_beta_invalid_defaults_with_both_warnings(
        self, fake_primary, aapl_metrics, raw_beta
    ):
        """Test that an invalid beta adds both beta warnings."""
        aapl_metrics["metric"]["beta"] = raw_beta

        snapshot = await fetch_fundamentals(fake_primary(metrics=aapl_metrics), "AAPL")

        assert snapshot.beta == 1.0
        assert snapshot.warnings == (BETA_INVALID_WARNING, BETA_DEFAULT_WARNING)

    @pytest.mark.asyncio
    async def test_zero_beta_is_kept(self, fake_primary, aapl_metrics):
        """Test that a beta of zero is kept."""
        aapl_metrics["metric"]["beta"] = 0

        snapshot = await fetch_fundamentals(fake_primary(metrics=aapl_metrics), "AAPL")

        assert snapshot.beta == 0.0
        assert snapshot.beta_defaulted is False

    @pytest.mark.asyncio
    async def test_eps_from_net_income(self, fake_primary):
        """Test the net income fallback for EPS."""
        provider = fake_primary(
            metrics={"metric": {"peTTM": 28.3, "beta": 1.2}},
            financials={"data": [{"report": {"ic": {"NetIncomeLoss": 1500000}}}]},
        )

        snapshot = await fetch_fundamentals(provider, "XYZ")

        assert snapshot.trailing_eps == 1500000
        assert NET_INCOME_EPS_WARNING in snapshot.warnings

    @pytest.mark.asyncio
    async def test_zero_eps_consults_filings(self, fake_primary):
        """Test that a zero EPS consults the filings."""
        provider = fake_primary(
            metrics={"metric": {"epsTTM": 0, "beta": 1.0}},
            financials={"data": []},
        )

        snapshot = await fetch_fundamentals(provider, "XYZ")

        assert ("financials", "XYZ") in provider.calls
        assert snapshot.trailing_eps == 0

    @pytest.mark.asyncio
    async def test_metrics_failure_degrades(self, fake_primary):
        """Test that a metrics failure degrades to a warning."""
        provider = fake_primary(errors={"metrics": ProviderError("API returned status 500")})

        snapshot = await fetch_fundamentals(provider, "AAPL")

        assert snapshot.price == 150.25
        assert snapshot.trailing_pe is None
        assert snapshot.trailing_eps is None
        assert snapshot.warnings[0] == (
            "Could not fetch metrics; some data may be unavailable: API returned status 500"
        )
        assert snapshot.warnings[-1] == BETA_DEFAULT_WARNING

    @pytest.mark.asyncio
    async def test_financials_failure_degrades(self, fake_primary):
        """Test that a financials failure degrades to a warning."""
        provider = fake_primary(
            metrics={"metric": {"beta": 1.0}},
            errors={"financials": ProviderError("timed out")},
        )

        snapshot = await fetch_fundamentals(provider, "AAPL")

        assert snapshot.trailing_eps is None
        assert "Could not fetch financials: timed out" in snapshot.warnings

    @pytest.mark.asyncio
    async def test_price_failure_propagates(self, fake_primary, aapl_metrics):
        """Test that a price failure propagates."""
        provider = fake_primary(quote={"c": 0}, metrics=aapl_metrics)

        with pytest.raises(PriceUnavailableError):
            await fetch_fundamentals(provider, "AAPL")
