"""Tests for the process entry point."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from invest_robot import main as main_module
from invest_robot.config.settings import Settings, TradingConfig
from invest_robot.core import bot as bot_module
from invest_robot.core.bot import InvestBot


@pytest.fixture(autouse=True)
def _no_log_sinks(monkeypatch) -> None:
    monkeypatch.setattr(bot_module, "setup_logger", lambda level, file: None)


@pytest.mark.asyncio
async def test_invalid_settings_exit_code(monkeypatch) -> None:
    monkeypatch.setattr(main_module, "get_settings", lambda: Settings(LOG_LEVEL="LOUD"))
    assert await main_module.main() == main_module.EXIT_STARTUP_FAILED


@pytest.mark.asyncio
async def test_no_trading_configs_exit_code(monkeypatch, mock_settings: Settings) -> None:
    monkeypatch.setattr(main_module, "get_settings", lambda: mock_settings)
    assert await main_module.main() == main_module.EXIT_STARTUP_FAILED


@pytest.mark.asyncio
async def test_robot_without_history_exit_code(
    monkeypatch,
    mock_settings: Settings,
    trading_config: TradingConfig,
    mock_exchange_client: AsyncMock,
) -> None:
    """A robot that cannot load candles aborts startup and disconnects."""
    mock_settings.TRADING_CONFIGS = [trading_config]
    mock_exchange_client.get_candles.side_effect = ConnectionError("no history")
    monkeypatch.setattr(main_module, "get_settings", lambda: mock_settings)
    monkeypatch.setattr(InvestBot, "_create_exchange", lambda self: mock_exchange_client)

    assert await main_module.main() == main_module.EXIT_STARTUP_FAILED
    mock_exchange_client.disconnect.assert_awaited_once()
