"""
Custom exceptions for the valuation engine.

Clean error hierarchy for distinct failure modes.
"""


class ValuationError(Exception):
    """Base exception for all valuation-related errors."""


class ProviderError(ValuationError):
    """HTTP errors, network failures, or malformed payloads from a data provider."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(ProviderError):
    """Provider reported a rate limit inside an otherwise successful response."""


class PriceUnavailableError(ValuationError):
    """Current price could not be obtained; valuation cannot proceed."""

    def __init__(self, symbol: str, message: str = ""):
        self.symbol = symbol
        super().__init__(message or f"Failed to get quote for {symbol}")


class BenchmarkError(ValuationError):
    """Market benchmark PE could not be resolved."""
