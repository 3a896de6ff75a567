"""
Configuration module using Pydantic Settings.

Provides validated, type-safe configuration from environment variables.
Uses fail-fast validation - the app crashes immediately if environment
variables have invalid types or out-of-range values.

API keys are optional at load time because the HTTP layer also accepts
them per request. Use the get_*_api_key() methods to read them; SecretStr
keeps them out of logs and reprs.
"""

import logging
import sys
from typing import Literal

import structlog
from pydantic import AliasChoices, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Logging Setup (must happen before Settings to capture validation errors) ---
logging.basicConfig(
    format="%(asctime)s [%(levelname)-8s] %(message)s",
    stream=sys.stderr,
    level=logging.INFO,
    force=True,
)

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.KeyValueRenderer(
            key_order=["timestamp", "level", "event"]
        ),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = logging.getLogger(__name__)


def validate_environment_variables() -> None:
    """Validate the keys needed to run a valuation from the command line.

    The primary (Finnhub) key is required. The secondary (Alpha Vantage) key
    is optional but without it no forward EPS is available, so every
    valuation will end with "valuation not possible".
    """
    if not config.get_alpha_vantage_api_key():
        logger.warning(
            "ALPHA_VANTAGE_API_KEY missing - forward EPS estimates will be unavailable."
        )

    if not config.get_finnhub_api_key():
        raise ValueError("Missing required environment variables: FINNHUB_API_KEY")

    logger.info("Environment variables validated")


# --- Pydantic Settings Class ---


class Settings(BaseSettings):
    """
    Configuration class for the PEG valuation service.

    Uses Pydantic Settings for validated, type-safe configuration from
    environment variables and an optional .env file.
    """

    # --- Valuation Parameters ---
    market_growth_rate_percent: float = Field(
        default=10.0,
        gt=0.0,
        validation_alias="MARKET_GROWTH_RATE_PERCENT",
        description="Assumed market earnings growth rate in percent",
    )
    benchmark_mode: Literal["fixed", "live"] = Field(
        default="fixed",
        validation_alias="BENCHMARK_MODE",
        description="Market PE source: fixed constant or live ETF lookup",
    )
    fixed_market_pe: float = Field(
        default=29.0,
        gt=0.0,
        validation_alias="FIXED_MARKET_PE",
        description="Market PE used when benchmark_mode is 'fixed'",
    )

    # --- API Configuration ---
    api_timeout: float = Field(
        default=10.0,
        gt=0.0,
        validation_alias="API_TIMEOUT",
        description="Timeout in seconds for each external provider call",
    )

    # --- HTTP Server ---
    host: str = Field(
        default="0.0.0.0",
        validation_alias="HOST",
        description="Bind address for the HTTP server",
    )
    port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        validation_alias="PORT",
        description="Port for the HTTP server",
    )

    # --- Logging ---
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    # --- Environment ---
    environment: str = Field(
        default="dev",
        validation_alias="ENVIRONMENT",
        description="Environment (dev, prod, test)",
    )

    # --- API Keys (SecretStr prevents accidental logging) ---
    finnhub_api_key: SecretStr = Field(
        default=SecretStr(""),
        validation_alias="FINNHUB_API_KEY",
        description="Finnhub market data API key (primary provider)",
    )
    alpha_vantage_api_key: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("ALPHA_VANTAGE_API_KEY", "ALPHAVANTAGE_API_KEY"),
        description="Alpha Vantage API key (secondary provider, optional)",
    )

    # --- Pydantic Settings Configuration ---
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        # CLI flags override a few settings at runtime
        frozen=False,
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def setup_environment(self) -> "Settings":
        """Apply the configured log level to the root logger and its children."""
        log_level_value = getattr(logging, self.log_level.upper(), logging.INFO)
        logging.getLogger().setLevel(log_level_value)
        for name in logging.root.manager.loggerDict:
            logging.getLogger(name).setLevel(log_level_value)
        return self

    def get_finnhub_api_key(self) -> str:
        """Get Finnhub API key securely from SecretStr field."""
        return self.finnhub_api_key.get_secret_value()

    def get_alpha_vantage_api_key(self) -> str:
        """Get Alpha Vantage API key securely from SecretStr field."""
        return self.alpha_vantage_api_key.get_secret_value()


# --- Module-level Singleton Instance ---
# Instantiated at import time, triggers validation
config = Settings()
