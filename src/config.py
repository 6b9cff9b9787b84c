"""Configuration loading and validation.

This module is responsible for:

- Loading `.env` into the process environment (without overriding existing vars).
- Converting environment variables into strongly-typed Pydantic models.
- Validating fields and providing actionable error messages.
"""

import logging
import os
from typing import TypeVar

import dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

_T = TypeVar("_T", int, float)


def _get_env_str(name: str, default: str) -> str:
    """Read a string env var with a default (blank counts as unset)."""
    value = os.getenv(name, "").strip()
    return value or default


def _get_env_number(name: str, default: _T, cast: type[_T]) -> _T:
    """Read an int/float env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a {cast.__name__}. Got: {raw!r}") from exc


class SimulatedExchangeConfig(BaseModel):
    """Tuning knobs for the in-memory simulated venue."""

    maker_fee: float = Field(default=0.0, description="Fee rate for resting orders filled by ticks")
    taker_fee: float = Field(default=0.0, description="Fee rate for orders that fill on entry")
    slippage: float = Field(default=1.1, description="Multiplicative best-price widening per aggressive fill")
    initial_best_ask: float = Field(default=100_000_000.0, description="Synthetic best ask before any feed")
    initial_best_bid: float = Field(default=0.0, description="Synthetic best bid before any feed")

    @field_validator("maker_fee", "taker_fee")
    def validate_fee(cls, v: float) -> float:
        """Fee rates are fractions in [0, 1)."""
        if not 0.0 <= v < 1.0:
            raise ValueError(f"fee rate must be in [0, 1). Got: {v}")
        return v

    @field_validator("slippage")
    def validate_slippage(cls, v: float) -> float:
        """Slippage can only widen the book."""
        if v < 1.0:
            raise ValueError(f"slippage must be >= 1.0. Got: {v}")
        return v

    @model_validator(mode="after")
    def validate_best_prices(self) -> "SimulatedExchangeConfig":
        """Best bid must sit at or below best ask."""
        if self.initial_best_bid < 0 or self.initial_best_ask <= 0:
            raise ValueError("initial best prices must be non-negative (ask strictly positive)")
        if self.initial_best_bid > self.initial_best_ask:
            raise ValueError(
                f"initial_best_bid ({self.initial_best_bid}) must not exceed initial_best_ask ({self.initial_best_ask})"
            )
        return self


class ExchangeCredentialsConfig(BaseModel):
    """Which venue to build and the key pair to build it with."""

    name: str = Field(default="simulated", description="Exchange name understood by the adapter factory")
    api_key: str = Field(default="", description="Venue API key (unused by the simulated venue)")
    api_secret_key: str = Field(default="", description="Venue API secret key (unused by the simulated venue)")

    @field_validator("name")
    def validate_name(cls, v: str) -> str:
        """Exchange names are matched case-insensitively."""
        if not v.strip():
            raise ValueError("EXCHANGE_NAME must not be blank.")
        return v.strip().lower()


class Config(BaseModel):
    """Top-level application configuration."""

    exchange: ExchangeCredentialsConfig = Field(default_factory=ExchangeCredentialsConfig)
    simulated: SimulatedExchangeConfig = Field(default_factory=SimulatedExchangeConfig)
    log_level: str = Field(default="INFO", description="Root logging level")
    observability_db_path: str | None = Field(default=None, description="DuckDB file for observability records")

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Accept any level name the `logging` module knows."""
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"LOG_LEVEL must be a logging level name. Got: {v!r}")
        return level


def load_config() -> Config:
    """Load application configuration from environment variables.

    Notes:
    - Calls `dotenv.load_dotenv()` so local `.env` values are visible to the process.
    - Raises `ValueError` with actionable messages when a value is malformed.
    """
    dotenv.load_dotenv()

    exchange = ExchangeCredentialsConfig(
        name=_get_env_str("EXCHANGE_NAME", "simulated"),
        api_key=_get_env_str("EXCHANGE_API_KEY", ""),
        api_secret_key=_get_env_str("EXCHANGE_API_SECRET_KEY", ""),
    )
    simulated = SimulatedExchangeConfig(
        maker_fee=_get_env_number("SIM_MAKER_FEE", 0.0, float),
        taker_fee=_get_env_number("SIM_TAKER_FEE", 0.0, float),
        slippage=_get_env_number("SIM_SLIPPAGE", 1.1, float),
        initial_best_ask=_get_env_number("SIM_INITIAL_BEST_ASK", 100_000_000.0, float),
        initial_best_bid=_get_env_number("SIM_INITIAL_BEST_BID", 0.0, float),
    )
    return Config(
        exchange=exchange,
        simulated=simulated,
        log_level=_get_env_str("LOG_LEVEL", "INFO"),
        observability_db_path=_get_env_str("OBSERVABILITY_DB_PATH", "") or None,
    )
