"""Shared pytest fixtures for invest-robot tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from loguru import logger

from invest_robot.config.settings import Settings, StrategyConfig, TradingConfig
from invest_robot.exchange.base_client import BaseExchangeClient
from invest_robot.models.candle import Candle, TradingSchedule

T0 = datetime(2024, 3, 4, 14, 30, tzinfo=timezone.utc)


def make_candles(closes: list[float], start: datetime = T0, step_minutes: int = 1) -> list[Candle]:
    """Build one-minute candles from a list of closes."""
    return [
        Candle(
            timestamp=start + timedelta(minutes=i * step_minutes),
            open=Decimal(str(close)),
            high=Decimal(str(close + 0.5)),
            low=Decimal(str(close - 0.5)),
            close=Decimal(str(close)),
            volume=Decimal("1000"),
        )
        for i, close in enumerate(closes)
    ]


@pytest.fixture
def mock_settings(tmp_path) -> Settings:
    """Return a Settings object with safe test defaults."""
    return Settings(
        ALPACA_API_KEY="test-key",
        ALPACA_API_SECRET="test-secret",
        ALPACA_PAPER=True,
        DATA_FEED="iex",
        TRADING_CONFIGS=[],
        TRADING_CONFIG_FILE=str(tmp_path / "missing.json"),
        ROBOT_RESTART_DELAY_SECONDS=0.01,
        HISTORY_LOOKBACK_HOURS=24,
        DRY_RUN=True,
        LOG_LEVEL="DEBUG",
        LOG_FILE=str(tmp_path / "invest_robot.log"),
    )


@pytest.fixture
def trading_config() -> TradingConfig:
    """Return an AAPL config with a fast-polling candles strategy."""
    return TradingConfig(
        symbol="AAPL",
        exchange="NASDAQ",
        instrument_id="BBG000B9XRY4",
        strategy=StrategyConfig(
            poll_interval_seconds=0.01,
            max_consecutive_errors=3,
        ),
    )


@pytest.fixture
def sample_candles() -> list[Candle]:
    """Sixty flat-ish one-minute candles."""
    return make_candles([100.0 + (i % 3) * 0.1 for i in range(60)])


@pytest.fixture
def mock_exchange_client(sample_candles: list[Candle]) -> AsyncMock:
    """Return an AsyncMock of BaseExchangeClient with an open exchange."""
    client = AsyncMock(spec=BaseExchangeClient)
    client.get_candles.return_value = sample_candles
    client.can_trade_now.return_value = (
        True,
        TradingSchedule(exchange="NASDAQ", is_open=True),
    )
    client.place_market_order.return_value = {
        "orderId": "123456",
        "clientOrderId": "abc",
        "status": "accepted",
        "symbol": "AAPL",
    }
    return client


@pytest.fixture
def log_records() -> list[dict]:
    """Capture loguru records emitted during the test."""
    records: list[dict] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


@pytest.fixture
def candle_factory():
    """Return the ``make_candles`` helper for building custom series."""
    return make_candles
