from abc import ABC, abstractmethod
from typing import Any


class PrimaryDataProvider(ABC):
    """
    Abstract Base Class for the primary market-data provider.

    Supplies quotes, fundamental metrics, and reported filings. Methods return
    the decoded JSON payload and raise ProviderError on any failure, leaving
    the decision of whether that failure is fatal to the caller.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Return True if an API key is configured."""
        pass

    @abstractmethod
    async def get_quote(self, symbol: str) -> dict[str, Any]:
        """Current quote. The last price is under key 'c'."""
        pass

    @abstractmethod
    async def get_metrics(self, symbol: str) -> dict[str, Any]:
        """Fundamental metrics, with values nested under key 'metric'."""
        pass

    @abstractmethod
    async def get_financials_reported(self, symbol: str) -> dict[str, Any]:
        """Annual reported filings, most recent first, under key 'data'."""
        pass


class EstimatesProvider(ABC):
    """
    Abstract Base Class for analyst-estimate providers.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Return True if an API key is configured."""
        pass

    @abstractmethod
    async def get_earnings_estimates(self, symbol: str) -> dict[str, Any]:
        """Analyst EPS estimates, newest period first, under key 'estimates'."""
        pass
