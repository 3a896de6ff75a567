"""HTTP boundary for the valuation engine."""

from peg_valuation.api.app import create_app

__all__ = ["create_app"]
