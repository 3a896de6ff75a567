"""Pytest configuration for PEG valuation tests."""

import logging
import os
import sys
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
import structlog

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from peg_valuation.data.interfaces import EstimatesProvider, PrimaryDataProvider  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """
    Set up test environment variables.
    Applies dummy keys so nothing accidentally reaches a real provider.
    """
    test_env = {
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "ERROR",
        "FINNHUB_API_KEY": "test-key",
    }
    with patch.dict(os.environ, test_env, clear=False):
        yield


@pytest.fixture(autouse=True)
def configure_structlog_for_tests():
    """Configure structlog for test environment."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.root.setLevel(logging.WARNING)
    yield


class FakePrimaryProvider(PrimaryDataProvider):
    """In-memory Finnhub stand-in. Also usable as an async context manager."""

    def __init__(
        self,
        quote: dict[str, Any] | None = None,
        metrics: dict[str, Any] | None = None,
        financials: dict[str, Any] | None = None,
        errors: dict[str, Exception] | None = None,
        failing_symbols: dict[str, Exception] | None = None,
    ):
        self.quote = quote if quote is not None else {"c": 150.25}
        self.metrics = metrics if metrics is not None else {"metric": {}}
        self.financials = financials if financials is not None else {"data": []}
        self.errors = errors or {}
        self.failing_symbols = failing_symbols or {}
        self.calls: list[tuple[str, str]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return None

    def is_available(self) -> bool:
        return True

    async def _respond(self, endpoint: str, symbol: str, payload: dict[str, Any]):
        self.calls.append((endpoint, symbol))
        if symbol in self.failing_symbols:
            raise self.failing_symbols[symbol]
        if endpoint in self.errors:
            raise self.errors[endpoint]
        return payload

    async def get_quote(self, symbol: str) -> dict[str, Any]:
        return await self._respond("quote", symbol, self.quote)

    async def get_metrics(self, symbol: str) -> dict[str, Any]:
        return await self._respond("metrics", symbol, self.metrics)

    async def get_financials_reported(self, symbol: str) -> dict[str, Any]:
        return await self._respond("financials", symbol, self.financials)


class FakeEstimatesProvider(EstimatesProvider):
    def __init__(
        self,
        estimates: list[dict[str, Any]] | None = None,
        error: Exception | None = None,
        available: bool = True,
    ):
        self.estimates = estimates if estimates is not None else []
        self.error = error
        self.available = available
        self.calls: list[str] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return None

    def is_available(self) -> bool:
        return self.available

    async def get_earnings_estimates(self, symbol: str) -> dict[str, Any]:
        self.calls.append(symbol)
        if self.error is not None:
            raise self.error
        return {"symbol": symbol, "estimates": self.estimates}


@pytest.fixture
def fake_primary():
    """Factory for FakePrimaryProvider instances."""
    return FakePrimaryProvider


@pytest.fixture
def fake_estimates():
    """Factory for FakeEstimatesProvider instances."""
    return FakeEstimatesProvider


@pytest.fixture
def aapl_metrics() -> dict[str, Any]:
    """Finnhub /stock/metric payload for a healthy large-cap."""
    return {
        "metric": {
            "peTTM": 28.3,
            "peAnnual": 30.1,
            "epsTTM": 5.31,
            "epsAnnual": 5.1,
            "beta": 1.15,
        }
    }
