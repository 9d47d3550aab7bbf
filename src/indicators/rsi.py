"""
Relative Strength Index (RSI) indicator.

RSI measures momentum by comparing the magnitude of recent gains to recent losses.
Values range from 0 to 100:
- < 30: Oversold
- > 70: Overbought

Algorithm:
    This implementation uses Wilder's Smoothed Moving Average (SMMA), which is
    the standard RSI calculation method.

    Seed (index = period):
        avg_gain = mean(gains over deltas 1..period)
        avg_loss = mean(losses over deltas 1..period)

    Wilder's SMMA formula thereafter:
        avg(i) = ((avg(i-1) * (period - 1)) + current_value) / period

    RSI = 100 - 100 / (1 + avg_gain / avg_loss)

    When avg_loss is zero the ratio is undefined and RSI is pinned at 100.

Parameters:
    - period: 14 (Wilder's original recommendation)

Integration:
    Used by the structural reversal strategy for momentum divergence at swing
    points and logged for the entry timeframe.
"""

import numpy as np
import pandas as pd


def _rsi_from_averages(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    return 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)


def calculate_rsi(
    prices: pd.Series,
    period: int = 14,
) -> pd.Series:
    """
    Calculate RSI using Wilder's Smoothed Moving Average.

    Args:
        prices: Series of closing prices
        period: RSI calculation period (default: 14, Wilder's recommendation)

    Returns:
        Series of RSI values (0-100), NaN before index `period`
    """
    values = prices.to_numpy(dtype=float)
    rsi = np.full(len(values), np.nan)

    if period <= 0 or len(values) <= period:
        return pd.Series(rsi, index=prices.index)

    delta = np.diff(values)
    gains = np.where(delta > 0, delta, 0.0)
    losses = np.where(delta < 0, -delta, 0.0)

    # delta[j] is the change into bar j + 1
    avg_gain = gains[:period].sum() / period
    avg_loss = losses[:period].sum() / period
    rsi[period] = _rsi_from_averages(avg_gain, avg_loss)

    for i in range(period + 1, len(values)):
        avg_gain = (avg_gain * (period - 1) + gains[i - 1]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i - 1]) / period
        rsi[i] = _rsi_from_averages(avg_gain, avg_loss)

    return pd.Series(rsi, index=prices.index)


def get_latest_rsi(rsi: pd.Series) -> float:
    """
    Latest RSI value, or 0.0 when the series is empty or not warmed up.

    Args:
        rsi: RSI series

    Returns:
        Latest RSI value
    """
    if len(rsi) == 0 or pd.isna(rsi.iloc[-1]):
        return 0.0
    return float(rsi.iloc[-1])
