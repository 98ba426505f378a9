"""Abstract base strategy for invest-robot."""

from __future__ import annotations

from abc import ABC, abstractmethod

from invest_robot.config.settings import Settings, TradingConfig
from invest_robot.exchange.base_client import BaseExchangeClient
from invest_robot.models.candle import Candle


class StrategyError(Exception):
    """Raised when a strategy cannot start or stop its trading session."""


class BaseStrategy(ABC):
    """Every trading strategy must inherit from this class.

    A strategy is primed once with historical candles and then driven by its
    robot through any number of ``start`` → ``block_until_end`` → ``stop``
    sessions. A robot never runs two sessions of the same strategy at once.
    """

    def __init__(
        self,
        config: TradingConfig,
        exchange_client: BaseExchangeClient,
        settings: Settings,
    ) -> None:
        self.config = config
        self.exchange = exchange_client
        self.settings = settings
        self.is_running: bool = False

    # ── Abstract interface ────────────────────────────────────────────────────

    @abstractmethod
    def initialize(self, candles: list[Candle]) -> None:
        """Load historical candles before the first session starts."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Begin a trading session. Raise ``StrategyError`` on failure."""
        ...

    @abstractmethod
    async def block_until_end(self) -> None:
        """Wait until the strategy decides the current session is over."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Tear down the current session. Raise ``StrategyError`` on failure."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable strategy name."""
        ...
