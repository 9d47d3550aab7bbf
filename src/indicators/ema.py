"""
Simple and Exponential Moving Averages (SMA / EMA).

SMA is the arithmetic mean of the trailing window. EMA gives more weight to
recent prices, making it more responsive than SMA.

Algorithm:
    SMA(i) = mean(price[i-period+1 .. i])

    EMA is seeded with the SMA of the first `period` prices (placed at index
    period-1) and then follows the standard recurrence:

        EMA(i) = price(i) * k + EMA(i-1) * (1 - k)
        where k = 2 / (period + 1)

    Unlike pandas' ewm(adjust=False), which seeds with the first price, the
    SMA seed leaves the first period-1 values undefined (NaN) and makes the
    series match charting platforms exactly once warmed up.

Slope:
    The percentage change of the last EMA value versus the previous one is
    used by the regime classifier as a trend-steepness metric.

Integration:
    EMA(200) slope on the higher timeframe feeds regime detection. EMA(20) on
    the entry timeframe decides trend-following direction. MACD is built from
    EMA(12) and EMA(26).
"""

import numpy as np
import pandas as pd


def calculate_sma(
    prices: pd.Series,
    period: int,
) -> pd.Series:
    """
    Calculate Simple Moving Average.

    Args:
        prices: Series of closing prices
        period: SMA window length

    Returns:
        SMA series (NaN for indices < period - 1)
    """
    if period <= 0:
        return pd.Series(np.nan, index=prices.index, dtype=float)
    return prices.astype(float).rolling(window=period).mean()


def calculate_ema(
    prices: pd.Series,
    period: int,
) -> pd.Series:
    """
    Calculate single EMA seeded by the SMA of the first `period` prices.

    Uses standard EMA formula: k = 2 / (period + 1)

    Args:
        prices: Series of closing prices
        period: EMA period

    Returns:
        EMA series (NaN before index period - 1, all NaN if too short)
    """
    values = prices.to_numpy(dtype=float)
    ema = np.full(len(values), np.nan)

    if period <= 0 or len(values) < period:
        return pd.Series(ema, index=prices.index)

    k = 2.0 / (period + 1)
    ema[period - 1] = values[:period].sum() / period

    for i in range(period, len(values)):
        ema[i] = values[i] * k + ema[i - 1] * (1 - k)

    return pd.Series(ema, index=prices.index)


def get_ema_slope(ema: pd.Series) -> float:
    """
    Percentage change of the latest EMA value versus the previous one.

    Returns 0.0 when fewer than two values exist or the previous value is
    undefined or zero.

    Args:
        ema: EMA series

    Returns:
        Slope in percent (e.g., 0.1 means the EMA rose 0.1% on the last bar)
    """
    if len(ema) < 2:
        return 0.0

    current = ema.iloc[-1]
    previous = ema.iloc[-2]

    if pd.isna(previous) or previous == 0 or pd.isna(current):
        return 0.0

    return float((current - previous) / previous * 100)
