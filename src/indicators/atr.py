"""
Average True Range (ATR) indicator.

ATR measures market volatility by calculating the average of true ranges.
Higher ATR indicates higher volatility, lower ATR indicates lower volatility.

Algorithm:
    True Range (TR) = max(high-low, |high-prev_close|, |low-prev_close|)

    The first bar has no previous close, so its TR is simply high-low and it
    is excluded from the seed.

    Seed (index = period): simple mean of TR[1..period]

    Wilder's SMMA formula thereafter:
        ATR(i) = ((ATR(i-1) * (period - 1)) + TR(i)) / period

    This matches the original formula from Welles Wilder's 1978 book
    "New Concepts in Technical Trading Systems".

Uses:
    - Entry zone width in the trend regime strategy (0.3 / 0.8 ATR)
    - Stop-loss buffer beyond the entry zone
    - Range buffers and liquidity-sweep proximity checks

Parameters:
    - period: 14 (Wilder's original recommendation)
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd


@dataclass
class ATRResult:
    """ATR calculation result."""

    atr: pd.Series
    true_range: pd.Series


def calculate_true_range(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
) -> pd.Series:
    """
    Calculate the per-bar True Range.

    Args:
        high: Series of high prices
        low: Series of low prices
        close: Series of closing prices

    Returns:
        True range series (first bar = high - low)
    """
    prev_close = close.shift(1)

    tr1 = high - low
    tr2 = (high - prev_close).abs()
    tr3 = (low - prev_close).abs()

    # NaN components on the first bar are skipped by max()
    return pd.concat([tr1, tr2, tr3], axis=1).max(axis=1).astype(float)


def calculate_atr(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
    period: int = 14,
) -> ATRResult:
    """
    Calculate Average True Range using Wilder's Smoothed Moving Average.

    Args:
        high: Series of high prices
        low: Series of low prices
        close: Series of closing prices
        period: ATR calculation period (default: 14, Wilder's recommendation)

    Returns:
        ATRResult with ATR (NaN before index `period`) and true range series
    """
    true_range = calculate_true_range(high, low, close)
    tr = true_range.to_numpy(dtype=float)
    atr = np.full(len(tr), np.nan)

    if period <= 0 or len(tr) <= period:
        return ATRResult(atr=pd.Series(atr, index=close.index), true_range=true_range)

    atr[period] = tr[1:period + 1].sum() / period
    for i in range(period + 1, len(tr)):
        atr[i] = (atr[i - 1] * (period - 1) + tr[i]) / period

    return ATRResult(atr=pd.Series(atr, index=close.index), true_range=true_range)


def get_latest_atr(atr_result: ATRResult) -> float:
    """
    Latest ATR value, or 0.0 when the series is empty or not warmed up.

    Args:
        atr_result: ATR calculation result

    Returns:
        Latest ATR value
    """
    if len(atr_result.atr) == 0 or pd.isna(atr_result.atr.iloc[-1]):
        return 0.0
    return float(atr_result.atr.iloc[-1])
