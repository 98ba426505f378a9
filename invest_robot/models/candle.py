"""Candle and trading-schedule models for invest-robot."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict


class CandleInterval(str, Enum):
    """Supported candle intervals."""

    ONE_MIN = "1m"
    FIVE_MIN = "5m"
    FIFTEEN_MIN = "15m"
    ONE_HOUR = "1h"
    ONE_DAY = "1d"

    def to_timedelta(self) -> timedelta:
        """Return the duration covered by one candle."""
        return _INTERVAL_DURATIONS[self]


_INTERVAL_DURATIONS: dict[CandleInterval, timedelta] = {
    CandleInterval.ONE_MIN: timedelta(minutes=1),
    CandleInterval.FIVE_MIN: timedelta(minutes=5),
    CandleInterval.FIFTEEN_MIN: timedelta(minutes=15),
    CandleInterval.ONE_HOUR: timedelta(hours=1),
    CandleInterval.ONE_DAY: timedelta(days=1),
}


class Candle(BaseModel):
    """One OHLCV bar; ``timestamp`` is the bucket open time (UTC)."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal


class TradingSchedule(BaseModel):
    """Trading-session information returned alongside the readiness flag."""

    exchange: str
    is_open: bool
    next_open: datetime | None = None
    next_close: datetime | None = None
