"""
Data Providers Package

Provider clients (Finnhub, Alpha Vantage) and the fetch stages built on
them: market benchmark, security fundamentals, and forward estimates.
"""

from peg_valuation.data.alpha_vantage_fetcher import AlphaVantageFetcher
from peg_valuation.data.finnhub_fetcher import FinnhubFetcher
from peg_valuation.data.interfaces import EstimatesProvider, PrimaryDataProvider

__all__ = [
    "AlphaVantageFetcher",
    "EstimatesProvider",
    "FinnhubFetcher",
    "PrimaryDataProvider",
]
