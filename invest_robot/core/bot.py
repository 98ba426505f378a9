"""Top-level bot: one supervised robot per configured instrument."""

from __future__ import annotations

import asyncio

from loguru import logger

from invest_robot.config.settings import Settings
from invest_robot.core.robot import InvestRobot
from invest_robot.exchange.base_client import BaseExchangeClient
from invest_robot.utils.logger import setup_logger


class InvestBot:
    """Wires settings, the exchange client and the robots together.

    Robots run concurrently and share nothing but the exchange client.
    """

    def __init__(
        self, settings: Settings, exchange: BaseExchangeClient | None = None
    ) -> None:
        self.settings = settings
        self.exchange = exchange
        self.robots: list[InvestRobot] = []
        self._tasks: list[asyncio.Task] = []
        self._connected = False

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Set up logging, connect, build every robot and run them.

        Steps:
        1. Set up logging.
        2. Connect to the exchange.
        3. Build and prime one robot per trading config (fatal on failure).
        4. Run all robots until they are stopped.
        """
        setup_logger(self.settings.LOG_LEVEL, self.settings.LOG_FILE)
        logger.info("invest-robot starting …")
        logger.info(
            "Config: symbols={} restart_delay={}s dry_run={}",
            [c.symbol for c in self.settings.TRADING_CONFIGS],
            self.settings.ROBOT_RESTART_DELAY_SECONDS,
            self.settings.DRY_RUN,
        )
        if not self.settings.TRADING_CONFIGS:
            raise ValueError(
                "No trading configs: set TRADING_CONFIGS or TRADING_CONFIG_FILE"
            )

        if self.exchange is None:
            self.exchange = self._create_exchange()
        await self.exchange.connect()
        self._connected = True
        logger.info("Exchange connected")

        for config in self.settings.TRADING_CONFIGS:
            robot = await InvestRobot.create(config, self.exchange, self.settings)
            self.robots.append(robot)

        logger.info("{} robots ready, running", len(self.robots))
        self._tasks = [
            asyncio.create_task(robot.run(), name=f"robot-{robot.config.symbol}")
            for robot in self.robots
        ]
        await asyncio.gather(*self._tasks)

    async def stop(self) -> None:
        """Stop every robot, wait for the loops to exit, then disconnect."""
        logger.info("invest-robot shutting down …")

        for robot in self.robots:
            await robot.stop()

        if self._tasks:
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
            for robot, result in zip(self.robots, results):
                if isinstance(result, Exception):
                    logger.error("Robot {} exited with error: {}", robot.config.symbol, result)

        if self.exchange is not None and self._connected:
            try:
                await self.exchange.disconnect()
            except Exception as exc:
                logger.error("Error disconnecting from exchange: {}", exc)
            self._connected = False

        logger.info("invest-robot shutdown complete")

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _create_exchange(self) -> BaseExchangeClient:
        """Return the Alpaca client configured from settings."""
        from invest_robot.exchange.alpaca_client import AlpacaClient

        return AlpacaClient(self.settings)
