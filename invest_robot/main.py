"""invest-robot entry point.

Exit codes: 0 after a requested shutdown, 1 when the fleet could not be
built (bad configuration or a robot without candle history).
"""

from __future__ import annotations

import asyncio
import signal
import sys

from loguru import logger
from pydantic import ValidationError

from invest_robot.config.settings import get_settings
from invest_robot.core.bot import InvestBot
from invest_robot.core.robot import RobotInitError

EXIT_OK = 0
EXIT_STARTUP_FAILED = 1


async def main() -> int:
    """Run the fleet until SIGINT / SIGTERM and return the process exit code."""
    try:
        settings = get_settings()
    except ValidationError as exc:
        logger.critical("Invalid settings: {}", exc)
        return EXIT_STARTUP_FAILED

    bot = InvestBot(settings)
    loop = asyncio.get_running_loop()
    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda: loop.create_task(bot.stop()))

    try:
        await bot.start()
    except (RobotInitError, ValueError) as exc:
        logger.critical("Fleet startup failed: {}", exc)
        return EXIT_STARTUP_FAILED
    finally:
        await bot.stop()
    return EXIT_OK


def run() -> None:
    """console_scripts wrapper."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(EXIT_OK)


if __name__ == "__main__":
    run()
