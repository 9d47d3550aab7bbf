"""
Moving Average Convergence Divergence (MACD) indicator.

MACD shows the relationship between two exponential moving averages and is used
to identify momentum, trend direction, and potential reversal points.

Algorithm:
    MACD Line = Fast EMA - Slow EMA          (where both are defined)
    Signal Line = EMA of MACD Line           (over its defined suffix)
    Histogram = MACD Line - Signal Line      (where both are defined)

    Both EMAs are SMA-seeded (see ema.py), so the MACD line is undefined until
    the slow EMA warms up. The signal EMA is computed only over the defined
    part of the MACD line and then re-aligned to the original bar index,
    which pushes the first signal value to index slow + signal - 2.

Parameters:
    - fast_period: 12 (standard)
    - slow_period: 26 (standard)
    - signal_period: 9 (standard)
"""

from dataclasses import dataclass

import pandas as pd

from src.indicators.ema import calculate_ema


@dataclass
class MACDResult:
    """MACD calculation result."""

    macd_line: pd.Series
    signal_line: pd.Series
    histogram: pd.Series


def calculate_macd(
    prices: pd.Series,
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> MACDResult:
    """
    Calculate MACD indicator.

    Args:
        prices: Series of closing prices
        fast_period: Fast EMA period (default: 12)
        slow_period: Slow EMA period (default: 26)
        signal_period: Signal line EMA period (default: 9)

    Returns:
        MACDResult with macd_line, signal_line, and histogram
    """
    ema_fast = calculate_ema(prices, fast_period)
    ema_slow = calculate_ema(prices, slow_period)

    # NaN propagates wherever either EMA is undefined
    macd_line = ema_fast - ema_slow

    defined = macd_line.dropna()
    signal_line = calculate_ema(defined, signal_period).reindex(prices.index)

    histogram = macd_line - signal_line

    return MACDResult(
        macd_line=macd_line,
        signal_line=signal_line,
        histogram=histogram,
    )
