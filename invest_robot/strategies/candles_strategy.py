"""Candles strategy for invest-robot.

Trades one instrument from closed candles using an EMA crossover with an
RSI guard, long only:

Entry rules  (BUY):
1. Fast EMA crosses above slow EMA while RSI < ``rsi_overbought``, **or**
2. RSI climbs back above ``rsi_oversold`` while fast EMA > slow EMA.

Exit rules  (SELL):
- Loss from entry ≥ ``stop_loss_percent``.
- Gain from entry ≥ ``take_profit_percent``.
- Fast EMA crosses below slow EMA.
- RSI ≥ ``rsi_overbought``.

A session polls new candles every ``poll_seconds`` and ends on its own when
the exchange closes or when polling keeps failing.
"""

from __future__ import annotations

import asyncio
from collections import deque
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

import pandas as pd
from loguru import logger

from invest_robot.config.settings import Settings, StrategyConfig, TradingConfig
from invest_robot.data import indicators
from invest_robot.data.converters import candles_to_frame, merge_candles
from invest_robot.exchange.base_client import BaseExchangeClient
from invest_robot.models.candle import Candle
from invest_robot.models.order import Order, OrderSide
from invest_robot.strategies.base_strategy import BaseStrategy, StrategyError


class Signal(str, Enum):
    """Decision for the latest candle."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


def min_bars_required(config: StrategyConfig) -> int:
    """Bars needed before a crossover can be evaluated."""
    return max(config.slow_ema, config.rsi_period + 1) + 1


def generate_signal(
    frame: pd.DataFrame,
    config: StrategyConfig,
    entry_price: float | None = None,
) -> tuple[Signal, str]:
    """Evaluate the latest candle of *frame*.

    Args:
        frame: OHLCV DataFrame, oldest first.
        config: Strategy parameters.
        entry_price: Entry price of the open long position, or None when flat.

    Returns:
        ``(signal, reason)``.
    """
    if len(frame) < min_bars_required(config):
        return Signal.HOLD, "warming up"

    fast = indicators.ema(frame, config.fast_ema)
    slow = indicators.ema(frame, config.slow_ema)
    rsi = indicators.rsi(frame, config.rsi_period)
    close = float(frame["close"].iloc[-1])
    rsi_now, rsi_prev = float(rsi.iloc[-1]), float(rsi.iloc[-2])

    crossed_up = fast.iloc[-2] <= slow.iloc[-2] and fast.iloc[-1] > slow.iloc[-1]
    crossed_down = fast.iloc[-2] >= slow.iloc[-2] and fast.iloc[-1] < slow.iloc[-1]

    if entry_price is not None:
        change_pct = (close - entry_price) / entry_price * 100.0
        if change_pct <= -config.stop_loss_percent:
            return Signal.SELL, f"stop-loss ({change_pct:.2f}%)"
        if change_pct >= config.take_profit_percent:
            return Signal.SELL, f"take-profit ({change_pct:.2f}%)"
        if crossed_down:
            return Signal.SELL, "ema cross down"
        if rsi_now >= config.rsi_overbought:
            return Signal.SELL, f"rsi overbought ({rsi_now:.1f})"
        return Signal.HOLD, "holding"

    if crossed_up and rsi_now < config.rsi_overbought:
        return Signal.BUY, "ema cross up"
    if rsi_prev < config.rsi_oversold <= rsi_now and fast.iloc[-1] > slow.iloc[-1]:
        return Signal.BUY, f"rsi recovery ({rsi_now:.1f})"
    return Signal.HOLD, "no entry"


class CandlesStrategy(BaseStrategy):
    """EMA-crossover candles strategy for a single instrument."""

    def __init__(
        self,
        config: TradingConfig,
        exchange_client: BaseExchangeClient,
        settings: Settings,
    ) -> None:
        super().__init__(config, exchange_client, settings)
        self.orders: deque[Order] = deque(maxlen=config.strategy.order_history_size)
        self._frame: pd.DataFrame = candles_to_frame([])
        self._initialized = False
        self._session_task: asyncio.Task | None = None
        self._session_end = asyncio.Event()
        self._consecutive_errors = 0
        self._position_qty = Decimal("0")
        self._entry_price: Decimal | None = None

    @property
    def name(self) -> str:
        return "candles"

    @property
    def frame(self) -> pd.DataFrame:
        return self._frame

    @property
    def position_quantity(self) -> Decimal:
        return self._position_qty

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def initialize(self, candles: list[Candle]) -> None:
        """Load the historical window into the candle frame."""
        self._frame = candles_to_frame(candles).tail(self.config.strategy.max_bars)
        self._initialized = True
        logger.debug(
            "[{}] {} primed with {} bars (need {})",
            self.name,
            self.config.symbol,
            len(self._frame),
            min_bars_required(self.config.strategy),
        )

    async def start(self) -> None:
        if self.is_running:
            raise StrategyError(f"{self.config.symbol} session is already running")
        if not self._initialized:
            raise StrategyError(f"{self.config.symbol} strategy was never initialised")

        self._session_end = asyncio.Event()
        self._consecutive_errors = 0
        self._session_task = asyncio.create_task(
            self._run_session(), name=f"candles-session-{self.config.symbol}"
        )
        self.is_running = True
        logger.info(
            "[{}] Session started for {} | poll={}s",
            self.name, self.config.symbol, self.config.strategy.poll_seconds,
        )

    async def block_until_end(self) -> None:
        if self._session_task is None:
            return
        await self._session_end.wait()

    async def stop(self) -> None:
        task, self._session_task = self._session_task, None
        if task is not None and not task.done():
            task.cancel()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        self._session_end.set()
        self.is_running = False

        if self.config.strategy.flatten_on_stop and self._position_qty > 0:
            try:
                await self._submit(OrderSide.SELL, "session stop flatten")
            except Exception as exc:
                raise StrategyError(
                    f"failed to flatten {self.config.symbol} position on stop: {exc}"
                ) from exc
        logger.info("[{}] Session stopped for {}", self.name, self.config.symbol)

    # ── Session loop ──────────────────────────────────────────────────────────

    async def _run_session(self) -> None:
        """Poll until the exchange closes or polling keeps failing."""
        strategy_config = self.config.strategy
        try:
            while True:
                await asyncio.sleep(strategy_config.poll_seconds)
                try:
                    still_open = await self._poll()
                except Exception as exc:
                    self._consecutive_errors += 1
                    logger.warning(
                        "[{}] Poll error for {} ({}/{}): {}",
                        self.name,
                        self.config.symbol,
                        self._consecutive_errors,
                        strategy_config.max_consecutive_errors,
                        exc,
                    )
                    if self._consecutive_errors >= strategy_config.max_consecutive_errors:
                        logger.error(
                            "[{}] Too many consecutive errors for {}, ending session",
                            self.name, self.config.symbol,
                        )
                        return
                    continue

                self._consecutive_errors = 0
                if not still_open:
                    logger.info(
                        "[{}] {} is closed, ending session",
                        self.config.exchange, self.config.symbol,
                    )
                    return
        finally:
            self._session_end.set()

    async def _poll(self) -> bool:
        """Fetch fresh candles and act on the signal. Return False once closed."""
        can_trade, _ = await self.exchange.can_trade_now(self.config.exchange)
        if not can_trade:
            return False

        strategy_config = self.config.strategy
        now = datetime.now(timezone.utc)
        if self._frame.empty:
            start = now - strategy_config.interval.to_timedelta() * min_bars_required(strategy_config)
        else:
            start = self._frame.index[-1].to_pydatetime()
        candles = await self.exchange.get_candles(
            self.config.symbol, start, now, strategy_config.interval
        )
        self._frame = merge_candles(self._frame, candles, strategy_config.max_bars)

        entry = float(self._entry_price) if self._entry_price is not None else None
        signal, reason = generate_signal(self._frame, strategy_config, entry)
        if signal == Signal.BUY and self._position_qty == 0:
            await self._submit(OrderSide.BUY, reason)
        elif signal == Signal.SELL and self._position_qty > 0:
            await self._submit(OrderSide.SELL, reason)
        return True

    async def _submit(self, side: OrderSide, reason: str) -> Order:
        """Send a market order (or simulate it in dry-run) and update the position."""
        if self._frame.empty:
            raise StrategyError(f"no price available for {self.config.symbol}")
        price = Decimal(str(self._frame["close"].iloc[-1]))
        quantity = (
            self.config.strategy.quantity if side == OrderSide.BUY else self._position_qty
        )
        order = Order(
            symbol=self.config.symbol,
            side=side,
            price=price,
            quantity=quantity,
            strategy=self.name,
            reason=reason,
        )
        self.orders.append(order)

        if self.settings.DRY_RUN:
            logger.info(
                "[DRY RUN] {} {} {} @ ~{} | {}",
                side.value, quantity, self.config.symbol, price, reason,
            )
            order.mark_filled()
        else:
            try:
                response = await self.exchange.place_market_order(
                    self.config.symbol, side.value, quantity
                )
            except Exception:
                order.mark_failed()
                raise
            order.mark_filled(response)
            logger.info(
                "[{}] {} {} {} @ ~{} | {} | order={}",
                self.name, side.value, quantity, self.config.symbol, price, reason, order.id,
            )

        if side == OrderSide.BUY:
            self._position_qty = quantity
            self._entry_price = price
        else:
            self._position_qty = Decimal("0")
            self._entry_price = None
        return order
