"""
Ordered fallback extraction for loosely-typed provider payloads.

Provider responses are partially-known records: any field may be missing,
null, a number, or a numeric string. A FieldChain lists candidate keys in
priority order together with the validator each value must pass; the first
key whose parsed value is valid wins.
"""

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

Validator = Callable[[float], bool]


def to_float(value: Any) -> float | None:
    """Parse a JSON scalar into a float, or None when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def is_finite(value: float) -> bool:
    return math.isfinite(value)


def is_positive(value: float) -> bool:
    return math.isfinite(value) and value > 0


def is_non_negative(value: float) -> bool:
    return math.isfinite(value) and value >= 0


def is_non_zero(value: float) -> bool:
    return math.isfinite(value) and value != 0


@dataclass(frozen=True)
class FieldChain:
    """Priority-ordered (field name, validator) pairs."""

    fields: tuple[tuple[str, Validator], ...]

    def first_valid(self, payload: Mapping[str, Any] | None) -> float | None:
        if not payload:
            return None
        for name, validator in self.fields:
            value = to_float(payload.get(name))
            if value is not None and validator(value):
                return value
        return None


# Finnhub /stock/metric keys, TTM variants preferred
PE_CHAIN = FieldChain(
    (
        ("peTTM", is_positive),
        ("peExclExtraTTM", is_positive),
        ("peAnnual", is_positive),
    )
)

EPS_CHAIN = FieldChain(
    (
        ("epsTTM", is_finite),
        ("epsExclExtraItemsTTM", is_finite),
        ("epsAnnual", is_finite),
    )
)

MARKET_PE_CHAIN = FieldChain(
    (
        ("peNormalizedAnnual", is_positive),
        ("peAnnual", is_positive),
    )
)
