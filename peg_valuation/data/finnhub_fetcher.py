"""
Finnhub Data Fetcher
Primary source for quotes, fundamental metrics, and reported financials.

Error Handling:
    - Non-2xx status: raises ProviderError carrying the status code
    - Malformed JSON: raises ProviderError
    - Network errors and timeouts: raise ProviderError

Callers decide which failures are fatal; this module never swallows them.

Usage:
    from peg_valuation.data.finnhub_fetcher import FinnhubFetcher

    async with FinnhubFetcher(api_key) as finnhub:
        quote = await finnhub.get_quote("AAPL")
"""

import asyncio
from typing import Any

import aiohttp
import structlog

from peg_valuation.config import config
from peg_valuation.data.interfaces import PrimaryDataProvider
from peg_valuation.exceptions import ProviderError

logger = structlog.get_logger(__name__)

BASE_URL = "https://finnhub.io/api/v1"


class FinnhubFetcher(PrimaryDataProvider):
    """Minimal Finnhub REST client; one aiohttp session per instance."""

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        """
        Initialize Finnhub fetcher.

        Args:
            api_key: Finnhub API key (or None to use the configured key)
            timeout: Per-request timeout in seconds (defaults to API_TIMEOUT)
        """
        self.api_key = api_key or config.get_finnhub_api_key() or None
        self.base_url = BASE_URL
        self.timeout = timeout or config.api_timeout
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self):
        """Async context manager entry."""
        self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, *args):
        """Async context manager exit."""
        await self.close()

    async def close(self):
        """Close the aiohttp session. Safe to call multiple times."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def is_available(self) -> bool:
        """Check if Finnhub is configured (API key present)."""
        return self.api_key is not None

    async def _get(self, endpoint: str, params: dict[str, Any]) -> Any:
        """
        Make API request and return decoded JSON.

        Args:
            endpoint: API path below the base URL (e.g., 'quote', 'stock/metric')
            params: Query parameters (token is added here)

        Raises:
            ProviderError: On missing key, non-2xx status, bad JSON, network
                error, or timeout
        """
        if not self.is_available():
            raise ProviderError("Finnhub API key is not configured")

        if not self._session:
            self._session = aiohttp.ClientSession()

        url = f"{self.base_url}/{endpoint}"
        query = {**params, "token": self.api_key}

        try:
            async with self._session.get(
                url, params=query, timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                if response.status < 200 or response.status >= 300:
                    logger.debug(
                        "finnhub_http_error", endpoint=endpoint, status=response.status
                    )
                    raise ProviderError(
                        f"Finnhub API call failed: API returned status {response.status}",
                        status_code=response.status,
                    )
                try:
                    return await response.json()
                except (ValueError, aiohttp.ContentTypeError) as e:
                    raise ProviderError(
                        f"Finnhub API call failed: malformed JSON ({e})",
                        status_code=response.status,
                    ) from e
        except asyncio.TimeoutError as e:
            logger.debug("finnhub_timeout", endpoint=endpoint, timeout=self.timeout)
            raise ProviderError(
                f"Finnhub API call failed: request timed out after {self.timeout}s"
            ) from e
        except aiohttp.ClientError as e:
            logger.debug("finnhub_network_error", endpoint=endpoint, error=str(e))
            raise ProviderError(f"Finnhub API call failed: {e}") from e

    async def get_quote(self, symbol: str) -> dict[str, Any]:
        data = await self._get("quote", {"symbol": symbol})
        return _require_object(data, "quote")

    async def get_metrics(self, symbol: str) -> dict[str, Any]:
        data = await self._get("stock/metric", {"symbol": symbol, "metric": "all"})
        return _require_object(data, "stock/metric")

    async def get_financials_reported(self, symbol: str) -> dict[str, Any]:
        data = await self._get(
            "stock/financials-reported", {"symbol": symbol, "freq": "annual"}
        )
        return _require_object(data, "stock/financials-reported")


def _require_object(data: Any, endpoint: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ProviderError(
            f"Finnhub API call failed: unexpected payload type from {endpoint}"
        )
    return data
