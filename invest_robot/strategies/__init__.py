"""Strategy registry for invest-robot."""

from __future__ import annotations

from invest_robot.config.settings import Settings, TradingConfig
from invest_robot.exchange.base_client import BaseExchangeClient
from invest_robot.strategies.base_strategy import BaseStrategy, StrategyError
from invest_robot.strategies.candles_strategy import CandlesStrategy

STRATEGY_MAP: dict[str, type[BaseStrategy]] = {
    "candles": CandlesStrategy,
}


def from_config(
    config: TradingConfig,
    exchange: BaseExchangeClient,
    settings: Settings,
) -> BaseStrategy:
    """Create the strategy named by ``config.strategy.name``."""
    cls = STRATEGY_MAP.get(config.strategy.name)
    if cls is None:
        raise ValueError(
            f"Unknown strategy: {config.strategy.name}. Allowed: {sorted(STRATEGY_MAP)}"
        )
    return cls(config, exchange, settings)


__all__ = ["BaseStrategy", "CandlesStrategy", "StrategyError", "from_config"]
