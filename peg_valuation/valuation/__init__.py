"""
Valuation Package

PEG-based fair value synthesis and the engine that feeds it from the data
providers.
"""

from peg_valuation.valuation.engine import (
    ValuationEngine,
    calculate_batch_valuations,
    calculate_stock_valuation,
    calculate_valuation,
)
from peg_valuation.valuation.synthesizer import calculate_peg, synthesize_valuation

__all__ = [
    "ValuationEngine",
    "calculate_batch_valuations",
    "calculate_peg",
    "calculate_stock_valuation",
    "calculate_valuation",
    "synthesize_valuation",
]
