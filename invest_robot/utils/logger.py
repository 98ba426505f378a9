"""loguru setup for invest-robot.

Robots log through ``logger.bind(symbol=..., instrument=...)``. Every line
shows which robot emitted it, and bound records are also written to a
``*_cycles.log`` file so one instrument's restart history can be read
without the rest of the fleet's noise.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

from loguru import logger

NO_ROBOT = "-"

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[symbol]: <8}</magenta> | "
    "<cyan>{module}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{extra[symbol]} | {module}:{function}:{line} | {message}"
)
_CYCLE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[instrument]} | {message}"


def _is_robot_record(record: dict[str, Any]) -> bool:
    return record["extra"].get("symbol", NO_ROBOT) != NO_ROBOT


def sibling_log_file(log_file: str, suffix: str) -> str:
    """``logs/invest_robot.log`` + ``cycles`` -> ``logs/invest_robot_cycles.log``."""
    path = Path(log_file)
    return str(path.with_name(f"{path.stem}_{suffix}{path.suffix or '.log'}"))


def setup_logger(
    log_level: str = "INFO",
    log_file: str = "logs/invest_robot.log",
    rotation: str = "10 MB",
    retention: int = 5,
) -> None:
    """Install the console sink and the main, error and cycle log files.

    Args:
        log_level: Minimum level for the console and the main file.
        log_file: Path of the main log file; the error and cycle files sit
            next to it.
        rotation: loguru rotation condition for every file sink.
        retention: Rotated files kept per sink.
    """
    logger.remove()
    logger.configure(extra={"symbol": NO_ROBOT, "instrument": NO_ROBOT})

    logger.add(sys.stderr, level=log_level, format=_CONSOLE_FORMAT, colorize=True)

    file_sinks = (
        (log_file, log_level, _FILE_FORMAT, None),
        (sibling_log_file(log_file, "error"), "ERROR", _FILE_FORMAT, None),
        (sibling_log_file(log_file, "cycles"), "INFO", _CYCLE_FORMAT, _is_robot_record),
    )
    for path, level, fmt, record_filter in file_sinks:
        logger.add(
            path,
            level=level,
            format=fmt,
            filter=record_filter,
            rotation=rotation,
            retention=retention,
            compression="zip",
            enqueue=True,
        )

    logger.info("Logger initialised | level={} file={}", log_level, log_file)
