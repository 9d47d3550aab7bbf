"""
Rolling price extremes.

The max high / min low of the trailing `lookback` bars. Used for range
boundaries in the trend regime strategy and break-of-structure checks on the
entry timeframe of the structural reversal strategy.
"""

from dataclasses import dataclass

import pandas as pd


@dataclass
class RollingExtremes:
    """Highest high and lowest low of the trailing window."""

    high: float
    low: float


def rolling_extremes(
    high: pd.Series,
    low: pd.Series,
    lookback: int = 20,
) -> RollingExtremes:
    """
    Highest high and lowest low over the last `lookback` bars.

    Uses all bars when fewer than `lookback` are available.

    Args:
        high: Series of high prices
        low: Series of low prices
        lookback: Number of trailing bars (default: 20)

    Returns:
        RollingExtremes for the window
    """
    return RollingExtremes(
        high=float(high.tail(lookback).max()),
        low=float(low.tail(lookback).min()),
    )
