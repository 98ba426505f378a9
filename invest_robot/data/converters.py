"""Candle conversion helpers for invest-robot."""

from __future__ import annotations

from typing import Iterable

import pandas as pd

from invest_robot.models.candle import Candle

OHLCV_COLUMNS = ["open", "high", "low", "close", "volume"]


def candles_to_frame(candles: Iterable[Candle]) -> pd.DataFrame:
    """Convert candles into an OHLCV DataFrame indexed by UTC timestamp.

    Args:
        candles: Candles in any order; duplicates keep the last occurrence.

    Returns:
        DataFrame with float columns ``open, high, low, close, volume``,
        sorted by timestamp. Empty input gives an empty frame with the
        same columns.
    """
    rows = [
        {
            "timestamp": c.timestamp,
            "open": float(c.open),
            "high": float(c.high),
            "low": float(c.low),
            "close": float(c.close),
            "volume": float(c.volume),
        }
        for c in candles
    ]
    if not rows:
        empty = pd.DataFrame(columns=OHLCV_COLUMNS, dtype=float)
        empty.index = pd.DatetimeIndex([], tz="UTC", name="timestamp")
        return empty

    df = pd.DataFrame(rows)
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    df = df.set_index("timestamp")
    df = df[~df.index.duplicated(keep="last")].sort_index()
    return df


def merge_candles(
    frame: pd.DataFrame, candles: Iterable[Candle], max_bars: int = 500
) -> pd.DataFrame:
    """Append *candles* to *frame*, keeping only the newest *max_bars* rows.

    A candle whose timestamp already exists replaces the stored bar, which
    is how a still-forming last candle gets updated between polls.
    """
    new = candles_to_frame(candles)
    if new.empty:
        return frame.tail(max_bars)
    if frame.empty:
        return new.tail(max_bars)
    merged = pd.concat([frame, new])
    merged = merged[~merged.index.duplicated(keep="last")].sort_index()
    return merged.tail(max_bars)
