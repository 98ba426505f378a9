"""Supervised single-instrument trading robot for invest-robot.

A robot is built once, primed with a day of candles, and then keeps its
strategy alive forever: every cycle checks that the exchange is open,
drives the strategy through start → block_until_end → stop, logs how the
cycle ended and waits a fixed delay before the next one. No error raised
inside a cycle ever leaves :meth:`InvestRobot.run`.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from loguru import logger

from invest_robot.config.settings import Settings, TradingConfig
from invest_robot.exchange.base_client import BaseExchangeClient
from invest_robot.strategies import from_config
from invest_robot.strategies.base_strategy import BaseStrategy


class RobotInitError(Exception):
    """Raised when a robot cannot be constructed. Never retried."""


class RobotCycleError(Exception):
    """Base class for errors that end one supervised cycle."""


class ReadinessDeniedError(RobotCycleError):
    """Exchange is closed, or its schedule could not be retrieved."""


class StrategyStartError(RobotCycleError):
    """Strategy ``start`` failed; the cycle ended before blocking."""


class StrategyRuntimeError(RobotCycleError):
    """Strategy ``block_until_end`` raised instead of returning."""


class StrategyStopError(RobotCycleError):
    """Strategy ``stop`` failed after the session ended."""


class CycleOutcome(str, Enum):
    """How one supervised cycle ended."""

    SUCCESS = "success"
    READINESS_DENIED = "readiness_denied"
    START_FAILED = "start_failed"
    RUNTIME_FAILED = "runtime_failed"
    STOP_FAILED = "stop_failed"
    CANCELLED = "cancelled"  # stop requested before the session started


_OUTCOME_BY_ERROR: dict[type[RobotCycleError], CycleOutcome] = {
    ReadinessDeniedError: CycleOutcome.READINESS_DENIED,
    StrategyStartError: CycleOutcome.START_FAILED,
    StrategyRuntimeError: CycleOutcome.RUNTIME_FAILED,
    StrategyStopError: CycleOutcome.STOP_FAILED,
}


def classify_error(exc: Exception) -> CycleOutcome:
    """Map a cycle error to its outcome; unknown errors count as runtime failures."""
    for error_type, outcome in _OUTCOME_BY_ERROR.items():
        if isinstance(exc, error_type):
            return outcome
    return CycleOutcome.RUNTIME_FAILED


@dataclass(frozen=True)
class RestartPolicy:
    """Flat delay between cycles: no backoff, no jitter, no retry cap."""

    delay_seconds: float = 10.0


class InvestRobot:
    """Keeps one instrument's strategy trading across failures and restarts."""

    def __init__(
        self,
        config: TradingConfig,
        strategy: BaseStrategy,
        exchange: BaseExchangeClient,
        restart_policy: RestartPolicy,
    ) -> None:
        self.config = config
        self.strategy = strategy
        self.exchange = exchange
        self.restart_policy = restart_policy
        self._stop_event = asyncio.Event()
        self._cycle_count = 0
        self._log = logger.bind(symbol=config.symbol, instrument=config.instrument_id)

    @classmethod
    async def create(
        cls,
        config: TradingConfig,
        exchange: BaseExchangeClient,
        settings: Settings,
        strategy: BaseStrategy | None = None,
    ) -> "InvestRobot":
        """Build a robot and prime its strategy with recent candles.

        The strategy is created from ``config`` unless one is passed in.
        Candles for the last ``HISTORY_LOOKBACK_HOURS`` are loaded before
        the robot exists, so it can trade from the first cycle.

        Raises:
            RobotInitError: the strategy could not be built or the candle
                history could not be fetched.
        """
        try:
            if strategy is None:
                strategy = from_config(config, exchange, settings)
            now = datetime.now(timezone.utc)
            candles = await exchange.get_candles(
                config.symbol,
                now - timedelta(hours=settings.HISTORY_LOOKBACK_HOURS),
                now,
                config.strategy.interval,
            )
            strategy.initialize(candles)
        except Exception as exc:
            raise RobotInitError(
                f"failed to initialise robot for {config.symbol}: {exc}"
            ) from exc

        logger.bind(symbol=config.symbol, instrument=config.instrument_id).info(
            "Initialised {} with {} candles", config.symbol, len(candles)
        )
        return cls(
            config=config,
            strategy=strategy,
            exchange=exchange,
            restart_policy=RestartPolicy(settings.ROBOT_RESTART_DELAY_SECONDS),
        )

    # ── Supervisor loop ───────────────────────────────────────────────────────

    async def run(self) -> None:
        """Run cycles until :meth:`stop` is called.

        Every cycle ends the same way whatever happened: log the outcome,
        then wait ``restart_policy.delay_seconds``.
        """
        while not self._stop_event.is_set():
            self._cycle_count += 1
            self._log.info(
                "Robot cycle {} started | symbol={} instrument={}",
                self._cycle_count, self.config.symbol, self.config.instrument_id,
            )

            try:
                outcome = await self._run_cycle()
            except Exception as exc:
                outcome = classify_error(exc)
                self._log.error(
                    "Robot cycle {} failed | symbol={} instrument={} outcome={} | {}",
                    self._cycle_count,
                    self.config.symbol,
                    self.config.instrument_id,
                    outcome.value,
                    exc,
                )
            else:
                self._log.info(
                    "Robot cycle {} finished | symbol={} instrument={} outcome={}",
                    self._cycle_count,
                    self.config.symbol,
                    self.config.instrument_id,
                    outcome.value,
                )

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self.restart_policy.delay_seconds,
                )
                break  # stop event was set
            except asyncio.TimeoutError:
                # Delay elapsed. A zero delay times out without suspending.
                await asyncio.sleep(0)

        self._log.info(
            "Robot stopped | symbol={} cycles={}", self.config.symbol, self._cycle_count
        )

    async def stop(self) -> None:
        """Ask the loop to exit; a running session is stopped, not abandoned."""
        self._log.info("Robot stop requested | symbol={}", self.config.symbol)
        self._stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    # ── Single cycle ──────────────────────────────────────────────────────────

    async def _run_cycle(self) -> CycleOutcome:
        """Readiness check, then start → block_until_end → stop.

        Returns ``CANCELLED`` without starting when a stop was requested
        while readiness was being checked.

        Raises:
            ReadinessDeniedError: exchange closed or schedule unavailable.
            StrategyStartError: ``start`` failed; nothing else was called.
            StrategyRuntimeError: ``block_until_end`` raised; ``stop`` was
                still attempted.
            StrategyStopError: ``stop`` failed.
        """
        await self._check_readiness()
        if self._stop_event.is_set():
            return CycleOutcome.CANCELLED

        try:
            await self.strategy.start()
        except Exception as exc:
            raise StrategyStartError(
                f"can't start {self.strategy.name} strategy for {self.config.symbol}: {exc}"
            ) from exc

        runtime_error: Exception | None = None
        try:
            await self._wait_for_session_end()
        except Exception as exc:
            runtime_error = exc

        try:
            await self.strategy.stop()
        except Exception as exc:
            raise StrategyStopError(
                f"can't stop {self.strategy.name} strategy for {self.config.symbol}: {exc}"
            ) from exc

        if runtime_error is not None:
            raise StrategyRuntimeError(
                f"{self.strategy.name} strategy for {self.config.symbol} "
                f"ended with error: {runtime_error}"
            ) from runtime_error
        return CycleOutcome.SUCCESS

    async def _check_readiness(self) -> None:
        try:
            can_trade, _ = await self.exchange.can_trade_now(self.config.exchange)
        except Exception as exc:
            raise ReadinessDeniedError(
                f"can't receive trading schedule for {self.config.exchange}: {exc}"
            ) from exc
        if not can_trade:
            raise ReadinessDeniedError(
                f"instrument {self.config.symbol} is not available, "
                f"{self.config.exchange} exchange is closed"
            )

    async def _wait_for_session_end(self) -> None:
        """Block until the strategy ends its session or a stop is requested."""
        session = asyncio.ensure_future(self.strategy.block_until_end())
        stop_waiter = asyncio.ensure_future(self._stop_event.wait())
        try:
            await asyncio.wait(
                {session, stop_waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            stop_waiter.cancel()
            if not session.done():
                session.cancel()
        if session.done() and not session.cancelled():
            session.result()  # re-raise a strategy runtime error
