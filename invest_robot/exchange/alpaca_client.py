"""Alpaca exchange client for invest-robot.

Uses the alpaca-py SDK for:
- Paper / live trading and the market clock via ``TradingClient``
- Historical stock bars via ``StockHistoricalDataClient``
- Historical crypto bars via ``CryptoHistoricalDataClient``

Crypto symbols use ``/`` separator (e.g. ``BTC/USD``) and route to the
crypto data pipeline. The ``CRYPTO`` exchange trades 24/7, every other
exchange name is answered from the US equities clock.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from datetime import datetime
from decimal import Decimal
from typing import Any

from loguru import logger

from invest_robot.config.settings import Settings
from invest_robot.exchange.base_client import BaseExchangeClient
from invest_robot.models.candle import Candle, CandleInterval, TradingSchedule

CRYPTO_EXCHANGES = frozenset({"CRYPTO"})


class AlpacaClientError(Exception):
    """Raised when an Alpaca API call fails."""

    def __init__(self, message: str, original: Exception | None = None):
        super().__init__(message)
        self.original = original


class _RateLimiter:
    """Sliding-window limiter shared by every robot using this client."""

    def __init__(self, max_calls: int = 190, window_seconds: float = 60.0) -> None:
        self._max_calls = max_calls
        self._window = window_seconds
        self._timestamps: deque[float] = deque()

    async def acquire(self) -> None:
        now = time.monotonic()
        while self._timestamps and self._timestamps[0] < now - self._window:
            self._timestamps.popleft()
        if len(self._timestamps) >= self._max_calls:
            sleep_for = self._window - (now - self._timestamps[0])
            if sleep_for > 0:
                logger.debug("Rate limiter: sleeping {:.1f}s", sleep_for)
                await asyncio.sleep(sleep_for)
        self._timestamps.append(time.monotonic())


class AlpacaClient(BaseExchangeClient):
    """Alpaca adapter for candles, the trading clock and market orders."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._trading_client: Any | None = None
        self._data_client: Any | None = None
        self._crypto_data_client: Any | None = None
        self._rate_limiter = _RateLimiter(max_calls=190, window_seconds=60.0)

    # ── Connection ───────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Create the Alpaca REST clients and verify the account."""
        try:
            from alpaca.data.historical.crypto import CryptoHistoricalDataClient
            from alpaca.data.historical.stock import StockHistoricalDataClient
            from alpaca.trading.client import TradingClient

            api_key = self._settings.ALPACA_API_KEY
            api_secret = self._settings.ALPACA_API_SECRET
            paper = self._settings.ALPACA_PAPER

            self._trading_client = TradingClient(
                api_key=api_key,
                secret_key=api_secret,
                paper=paper,
            )
            self._data_client = StockHistoricalDataClient(
                api_key=api_key,
                secret_key=api_secret,
            )
            self._crypto_data_client = CryptoHistoricalDataClient(
                api_key=api_key,
                secret_key=api_secret,
            )

            account = self._trading_client.get_account()
            logger.info(
                "Connected to Alpaca {} | equity=${} | buying_power=${}",
                "PAPER" if paper else "LIVE",
                account.equity,
                account.buying_power,
            )
        except Exception as exc:
            raise AlpacaClientError(
                f"Failed to connect to Alpaca: {exc}", original=exc
            ) from exc

    async def disconnect(self) -> None:
        """Drop the REST clients."""
        self._trading_client = None
        self._data_client = None
        self._crypto_data_client = None
        logger.info("Disconnected from Alpaca")

    def _ensure_connected(self) -> Any:
        """Return the live trading client or raise."""
        if self._trading_client is None:
            raise AlpacaClientError(
                "AlpacaClient is not connected. Call connect() first."
            )
        return self._trading_client

    @staticmethod
    def _is_crypto(symbol: str) -> bool:
        return "/" in symbol

    @staticmethod
    def _timeframe(interval: CandleInterval) -> Any:
        from alpaca.data.timeframe import TimeFrame, TimeFrameUnit

        tf_map = {
            CandleInterval.ONE_MIN: TimeFrame.Minute,
            CandleInterval.FIVE_MIN: TimeFrame(5, TimeFrameUnit.Minute),
            CandleInterval.FIFTEEN_MIN: TimeFrame(15, TimeFrameUnit.Minute),
            CandleInterval.ONE_HOUR: TimeFrame.Hour,
            CandleInterval.ONE_DAY: TimeFrame.Day,
        }
        return tf_map[interval]

    # ── Market Data ──────────────────────────────────────────────────────────

    async def get_candles(
        self,
        symbol: str,
        start: datetime,
        end: datetime,
        interval: CandleInterval,
    ) -> list[Candle]:
        """Fetch historical bars, routed to the stock or crypto data client."""
        self._ensure_connected()
        await self._rate_limiter.acquire()
        logger.debug("get_candles({}, {} → {}, {})", symbol, start, end, interval.value)

        timeframe = self._timeframe(interval)
        try:
            if self._is_crypto(symbol):
                from alpaca.data.requests import CryptoBarsRequest

                request = CryptoBarsRequest(
                    symbol_or_symbols=symbol,
                    timeframe=timeframe,
                    start=start,
                    end=end,
                )
                bars_response = self._crypto_data_client.get_crypto_bars(request)
            else:
                from alpaca.data.enums import DataFeed
                from alpaca.data.requests import StockBarsRequest

                request = StockBarsRequest(
                    symbol_or_symbols=symbol,
                    timeframe=timeframe,
                    start=start,
                    end=end,
                    feed=DataFeed(self._settings.DATA_FEED),
                )
                bars_response = self._data_client.get_stock_bars(request)

            bars_list = (
                bars_response[symbol]
                if isinstance(bars_response, dict)
                else bars_response.data.get(symbol, [])
            )
            return [
                Candle(
                    timestamp=bar.timestamp,
                    open=Decimal(str(bar.open)),
                    high=Decimal(str(bar.high)),
                    low=Decimal(str(bar.low)),
                    close=Decimal(str(bar.close)),
                    volume=Decimal(str(bar.volume)),
                )
                for bar in bars_list
            ]
        except Exception as exc:
            raise AlpacaClientError(
                f"Failed to get candles for {symbol}: {exc}", original=exc
            ) from exc

    async def can_trade_now(self, exchange: str) -> tuple[bool, TradingSchedule | None]:
        """Return whether *exchange* is open, using the Alpaca market clock."""
        if exchange.upper() in CRYPTO_EXCHANGES:
            return True, TradingSchedule(exchange=exchange, is_open=True)

        client = self._ensure_connected()
        await self._rate_limiter.acquire()
        try:
            clock = client.get_clock()
        except Exception as exc:
            raise AlpacaClientError(
                f"Failed to get market clock: {exc}", original=exc
            ) from exc

        schedule = TradingSchedule(
            exchange=exchange,
            is_open=bool(clock.is_open),
            next_open=clock.next_open,
            next_close=clock.next_close,
        )
        logger.debug(
            "Market clock {} | open={} next_open={} next_close={}",
            exchange, schedule.is_open, schedule.next_open, schedule.next_close,
        )
        return schedule.is_open, schedule

    # ── Orders ───────────────────────────────────────────────────────────────

    async def place_market_order(
        self, symbol: str, side: str, quantity: Decimal
    ) -> dict:
        """Place a market order (GTC for crypto, DAY for stocks)."""
        from alpaca.trading.enums import OrderSide, TimeInForce
        from alpaca.trading.requests import MarketOrderRequest

        client = self._ensure_connected()
        await self._rate_limiter.acquire()
        tif = TimeInForce.GTC if self._is_crypto(symbol) else TimeInForce.DAY
        logger.info(
            "place_market_order | symbol={} side={} qty={} tif={}",
            symbol, side, quantity, tif,
        )
        try:
            order_side = OrderSide.BUY if side.upper() == "BUY" else OrderSide.SELL
            request = MarketOrderRequest(
                symbol=symbol,
                qty=float(quantity),
                side=order_side,
                time_in_force=tif,
            )
            order = client.submit_order(request)
            response = {
                "orderId": str(order.id),
                "clientOrderId": str(order.client_order_id),
                "status": order.status.value if hasattr(order.status, "value") else str(order.status),
                "symbol": symbol,
            }
            logger.debug("Market order response: {}", response)
            return response
        except Exception as exc:
            raise AlpacaClientError(
                f"Failed to place market order: {exc}", original=exc
            ) from exc
