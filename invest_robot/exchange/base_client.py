"""Abstract exchange client interface for invest-robot."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal

from invest_robot.models.candle import Candle, CandleInterval, TradingSchedule


class BaseExchangeClient(ABC):
    """Market-data and brokerage operations every adapter must implement.

    One client instance is shared by all robots of a process, so
    implementations must tolerate concurrent calls from independent robots.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Establish the connection / session to the exchange."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Gracefully close the connection."""
        ...

    @abstractmethod
    async def get_candles(
        self,
        symbol: str,
        start: datetime,
        end: datetime,
        interval: CandleInterval,
    ) -> list[Candle]:
        """Return historical candles for *symbol* in ``[start, end]``, oldest first."""
        ...

    @abstractmethod
    async def can_trade_now(self, exchange: str) -> tuple[bool, TradingSchedule | None]:
        """Return whether *exchange* is open right now, plus its schedule."""
        ...

    @abstractmethod
    async def place_market_order(
        self, symbol: str, side: str, quantity: Decimal
    ) -> dict:
        """Place a market order and return the exchange response."""
        ...
