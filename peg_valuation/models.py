"""
Data contracts for the valuation engine.

Pydantic models describe the request and the externally visible results
(serialised with camelCase keys). Plain frozen dataclasses carry the
intermediate state that only lives for the duration of one valuation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_MARKET_GROWTH_RATE_PERCENT = 10.0


class Market(str, Enum):
    """Markets with a supported benchmark."""

    US = "US"
    HK = "HK"


class ValuationMethod(str, Enum):
    PEG = "peg"
    EARNINGS_TRACK = "earnings_track"
    ASSET_BASED = "asset_based"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        """Dump with the camelCase names used on the wire."""
        return self.model_dump(mode="json", by_alias=True)


class ValuationRequest(BaseModel):
    """Inputs for one valuation. Constructed once, never mutated."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    market: Market = Market.US
    market_growth_rate_percent: float = Field(
        default=DEFAULT_MARKET_GROWTH_RATE_PERCENT, gt=0.0
    )
    finnhub_api_key: SecretStr
    alpha_vantage_api_key: SecretStr | None = None

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("symbol must not be empty")
        return value

    @field_validator("finnhub_api_key")
    @classmethod
    def require_primary_key(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("finnhub_api_key must not be empty")
        return value

    @field_validator("alpha_vantage_api_key")
    @classmethod
    def blank_secondary_key_is_none(cls, value: SecretStr | None) -> SecretStr | None:
        if value is not None and not value.get_secret_value():
            return None
        return value

    def get_finnhub_api_key(self) -> str:
        return self.finnhub_api_key.get_secret_value()

    def get_alpha_vantage_api_key(self) -> str | None:
        if self.alpha_vantage_api_key is None:
            return None
        return self.alpha_vantage_api_key.get_secret_value()


@dataclass(frozen=True)
class MarketBenchmark:
    """Reference market PE and where it came from."""

    market: Market
    market_pe: float
    source_note: str


@dataclass(frozen=True)
class FundamentalsSnapshot:
    """Fetched state for one ticker at one point in time."""

    price: float | None
    beta: float = 1.0
    trailing_eps: float | None = None
    trailing_pe: float | None = None
    forward_eps: float | None = None
    beta_defaulted: bool = False
    warnings: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ForwardEstimate:
    """Analyst forward EPS and the reporting period it applies to."""

    eps: float
    period: str


class Assumptions(_CamelModel):
    market_growth_rate_percent: float
    notes: list[str] = Field(default_factory=list)


class ValuationResult(_CamelModel):
    """Outcome of a PEG valuation, including partial data when not possible."""

    symbol: str
    market: Market
    market_pe: float | None = None
    market_peg: float | None = None
    beta: float | None = None
    actual_eps: float | None = None
    estimated_eps: float | None = None
    stock_pe: float | None = None
    growth_rate: float | None = None
    stock_peg: float | None = None
    current_price: float | None = None
    fair_value: float | None = None
    assumptions: Assumptions
    warnings: list[str] = Field(default_factory=list)
    has_forward_eps: bool = False
    beta_fallback_used: bool = False
    valuation_possible: bool = False


class PlaceholderValuationResult(_CamelModel):
    """Fixed shape returned by valuation methods that are not implemented yet."""

    symbol: str
    market: Market
    method: ValuationMethod
    fair_value: float | None = None
    valuation_possible: bool = False
    message: str
    warnings: list[str] = Field(default_factory=lambda: ["Method not yet implemented"])
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ValuationFailure(_CamelModel):
    """Per-item error entry in a batch response."""

    symbol: str
    error: str
    valuation_possible: bool = False
