"""Technical indicators used by the candles strategy."""

from __future__ import annotations

import pandas as pd


def _validate_df(df: pd.DataFrame, required_col: str, min_rows: int) -> None:
    """Validate that the DataFrame has the required column and sufficient rows."""
    if required_col not in df.columns:
        raise ValueError(
            f"DataFrame must contain a '{required_col}' column. "
            f"Available columns: {list(df.columns)}"
        )
    if len(df) < min_rows:
        raise ValueError(
            f"Insufficient data: need at least {min_rows} rows, got {len(df)}"
        )


def sma(df: pd.DataFrame, period: int = 20) -> pd.Series:
    """Simple moving average of the close."""
    _validate_df(df, "close", period)
    return df["close"].rolling(window=period).mean()


def ema(df: pd.DataFrame, period: int = 20) -> pd.Series:
    """Calculate Exponential Moving Average.

    Args:
        df: OHLCV DataFrame with a 'close' column.
        period: Look-back period.

    Returns:
        pandas Series of EMA values.
    """
    _validate_df(df, "close", period)
    return df["close"].ewm(span=period, adjust=False).mean()


def rsi(df: pd.DataFrame, period: int = 14) -> pd.Series:
    """Calculate Relative Strength Index (Wilder smoothing).

    Args:
        df: OHLCV DataFrame with a 'close' column.
        period: Look-back period.

    Returns:
        pandas Series of RSI values (0-100); the first *period* values are NaN.
    """
    _validate_df(df, "close", period + 1)
    delta = df["close"].diff()
    gain = delta.where(delta > 0, 0.0)
    loss = (-delta).where(delta < 0, 0.0)

    avg_gain = gain.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()
    avg_loss = loss.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()

    rs = avg_gain / avg_loss
    rsi_series = 100.0 - (100.0 / (1.0 + rs))
    # Flat prices: no gains and no losses
    flat = (avg_gain == 0) & (avg_loss == 0)
    return rsi_series.mask(flat, 50.0)
