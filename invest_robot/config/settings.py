"""Pydantic-based settings management for invest-robot."""

from __future__ import annotations

import json
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from invest_robot.models.candle import CandleInterval


class StrategyConfig(BaseModel):
    """Strategy parameters for one traded instrument."""

    model_config = ConfigDict(frozen=True)

    name: str = "candles"
    interval: CandleInterval = CandleInterval.ONE_MIN

    # ── Candles strategy tuning ──────────────────────────────────────────────
    fast_ema: int = Field(default=9, gt=1)
    slow_ema: int = Field(default=21, gt=1)
    rsi_period: int = Field(default=14, gt=1)
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0
    quantity: Decimal = Decimal("1")
    stop_loss_percent: float = 1.0
    take_profit_percent: float = 2.0

    # ── Session control ──────────────────────────────────────────────────────
    max_consecutive_errors: int = Field(default=5, ge=1)
    poll_interval_seconds: float | None = Field(default=None, gt=0)  # None -> one candle interval
    max_bars: int = Field(default=500, ge=10)
    order_history_size: int = Field(default=100, ge=1)  # most recent orders kept in memory
    flatten_on_stop: bool = True

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: Decimal) -> Decimal:
        """Order quantity must be positive."""
        if v <= Decimal("0"):
            raise ValueError(f"quantity must be positive, got {v}")
        return v

    @model_validator(mode="after")
    def validate_ema_periods(self) -> "StrategyConfig":
        """The slow EMA must look further back than the fast one."""
        if self.slow_ema <= self.fast_ema:
            raise ValueError(
                f"slow_ema ({self.slow_ema}) must be greater than fast_ema ({self.fast_ema})"
            )
        return self

    @property
    def poll_seconds(self) -> float:
        """Seconds between two polls of the strategy session."""
        if self.poll_interval_seconds is not None:
            return self.poll_interval_seconds
        return self.interval.to_timedelta().total_seconds()


class TradingConfig(BaseModel):
    """Identity of one robot: the instrument and its strategy parameters."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    exchange: str
    instrument_id: str = ""
    strategy: StrategyConfig = StrategyConfig()

    @model_validator(mode="before")
    @classmethod
    def default_instrument_id(cls, data: Any) -> Any:
        """Fall back to the symbol when no internal instrument id is given."""
        if isinstance(data, dict) and not data.get("instrument_id"):
            data = {**data, "instrument_id": data.get("symbol", "")}
        return data


def load_trading_configs(path: str | Path) -> list[TradingConfig]:
    """Read a JSON list of trading configs from *path*."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"{path} must contain a JSON list of trading configs")
    return [TradingConfig.model_validate(item) for item in raw]


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Alpaca ─────────────────────────────────────────────────────────────────
    ALPACA_API_KEY: str = ""
    ALPACA_API_SECRET: str = ""
    ALPACA_PAPER: bool = True  # Default to paper trading for safety
    DATA_FEED: str = "iex"  # "iex" (free) or "sip" (paid consolidated)

    # ── Robots ─────────────────────────────────────────────────────────────────
    TRADING_CONFIGS: list[TradingConfig] = []
    TRADING_CONFIG_FILE: str = "config/trading.json"
    ROBOT_RESTART_DELAY_SECONDS: float = 10.0
    HISTORY_LOOKBACK_HOURS: int = 24
    DRY_RUN: bool = True  # Log orders instead of sending them

    # ── Logging ────────────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/invest_robot.log"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}, got '{v}'")
        return v.upper()

    @field_validator("DATA_FEED")
    @classmethod
    def validate_data_feed(cls, v: str) -> str:
        """Ensure data feed is valid."""
        allowed = {"iex", "sip"}
        if v.lower() not in allowed:
            raise ValueError(f"DATA_FEED must be one of {allowed}, got '{v}'")
        return v.lower()

    @field_validator("ROBOT_RESTART_DELAY_SECONDS")
    @classmethod
    def validate_restart_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"ROBOT_RESTART_DELAY_SECONDS must be >= 0, got {v}")
        return v

    @field_validator("HISTORY_LOOKBACK_HOURS")
    @classmethod
    def validate_lookback(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"HISTORY_LOOKBACK_HOURS must be positive, got {v}")
        return v

    @model_validator(mode="after")
    def resolve_trading_configs(self) -> "Settings":
        """If TRADING_CONFIGS is empty, load them from TRADING_CONFIG_FILE."""
        if not self.TRADING_CONFIGS and Path(self.TRADING_CONFIG_FILE).is_file():
            self.TRADING_CONFIGS = load_trading_configs(self.TRADING_CONFIG_FILE)
        symbols = [c.symbol for c in self.TRADING_CONFIGS]
        if len(symbols) != len(set(symbols)):
            raise ValueError(f"Duplicate symbols in TRADING_CONFIGS: {symbols}")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton Settings instance."""
    return Settings()
