"""
Alpha Vantage Data Fetcher
Secondary source, used only for analyst forward EPS estimates.

Alpha Vantage answers most failures with HTTP 200 and a sentinel field in
the body instead of an error status:
    - "Note" / "Information": rate limit or plan notice -> RateLimitError
    - "Error Message", or "Error" other than "None": -> ProviderError
These are checked before the payload is accepted.
"""

import asyncio
from typing import Any

import aiohttp
import structlog

from peg_valuation.config import config
from peg_valuation.data.interfaces import EstimatesProvider
from peg_valuation.exceptions import ProviderError, RateLimitError

logger = structlog.get_logger(__name__)

BASE_URL = "https://www.alphavantage.co/query"

RATE_LIMIT_SENTINELS = ("Note", "Information")
ERROR_SENTINELS = ("Error Message", "Error")


def check_sentinels(data: Any) -> dict[str, Any]:
    """Convert in-band error signals into exceptions; return the payload otherwise."""
    if not isinstance(data, dict):
        raise ProviderError("Alpha Vantage API call failed: unexpected payload type")

    for key in RATE_LIMIT_SENTINELS:
        if data.get(key):
            raise RateLimitError(
                f"Alpha Vantage API call failed: API rate limit exceeded: {data[key]}"
            )

    for key in ERROR_SENTINELS:
        error = data.get(key)
        if error and error != "None":
            raise ProviderError(f"Alpha Vantage API call failed: {error}")

    return data


class AlphaVantageFetcher(EstimatesProvider):
    """Minimal Alpha Vantage client for the EARNINGS_ESTIMATES function."""

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        self.api_key = api_key or config.get_alpha_vantage_api_key() or None
        self.base_url = BASE_URL
        self.timeout = timeout or config.api_timeout
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self):
        self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        """Close the aiohttp session. Safe to call multiple times."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def is_available(self) -> bool:
        return self.api_key is not None

    async def _query(self, function: str, symbol: str) -> dict[str, Any]:
        if not self.is_available():
            raise ProviderError("Alpha Vantage API key is not configured")

        if not self._session:
            self._session = aiohttp.ClientSession()

        params = {"function": function, "symbol": symbol, "apikey": self.api_key}

        try:
            async with self._session.get(
                self.base_url,
                params=params,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status < 200 or response.status >= 300:
                    raise ProviderError(
                        f"Alpha Vantage API call failed: API returned status {response.status}",
                        status_code=response.status,
                    )
                try:
                    data = await response.json()
                except (ValueError, aiohttp.ContentTypeError) as e:
                    raise ProviderError(
                        f"Alpha Vantage API call failed: malformed JSON ({e})",
                        status_code=response.status,
                    ) from e
        except asyncio.TimeoutError as e:
            raise ProviderError(
                f"Alpha Vantage API call failed: request timed out after {self.timeout}s"
            ) from e
        except aiohttp.ClientError as e:
            raise ProviderError(f"Alpha Vantage API call failed: {e}") from e

        try:
            return check_sentinels(data)
        except RateLimitError:
            logger.warning("alpha_vantage_rate_limited", symbol=symbol)
            raise

    async def get_earnings_estimates(self, symbol: str) -> dict[str, Any]:
        return await self._query("EARNINGS_ESTIMATES", symbol)
