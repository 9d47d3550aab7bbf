"""
Average Directional Index (ADX) indicator.

ADX measures trend strength regardless of direction. The directional
indicators (+DI / -DI) show which side is in control.

Algorithm:
    Directional movement (Wilder):
        up_move   = high(i) - high(i-1)
        down_move = low(i-1) - low(i)
        +DM = up_move   if up_move > down_move and up_move > 0 else 0
        -DM = down_move if down_move > up_move and down_move > 0 else 0

    A move only counts when it strictly exceeds the opposite move, so equal
    moves cancel out to zero on both sides.

    Wilder smoothing of +DM, -DM and TR (cumulative form, not an average):
        S(period) = sum(x[1..period])
        S(i)      = S(i-1) - S(i-1) / period + x(i)

    +DI = 100 * S(+DM) / S(TR)
    -DI = 100 * S(-DM) / S(TR)
    DX  = 100 * |+DI - -DI| / (+DI + -DI)      (0 when the sum is 0)

    ADX is seeded as the mean of the first `period` DX values, which makes the
    first defined value land on index 2*period - 1, then Wilder-smoothed:
        ADX(i) = ((ADX(i-1) * (period - 1)) + DX(i)) / period

Interpretation:
    - > 25: Strong trend
    - 20-25: Developing trend
    - < 18: Ranging market

Parameters:
    - period: 14 (Wilder's original recommendation)

Integration:
    Used by the regime classifier on the higher timeframe.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd

from src.indicators.atr import calculate_true_range


@dataclass
class ADXResult:
    """ADX calculation result."""

    adx: pd.Series
    plus_di: pd.Series
    minus_di: pd.Series
    dx: pd.Series


def calculate_adx(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
    period: int = 14,
) -> ADXResult:
    """
    Calculate ADX with +DI / -DI using Wilder's smoothing.

    Args:
        high: Series of high prices
        low: Series of low prices
        close: Series of closing prices
        period: Smoothing period (default: 14)

    Returns:
        ADXResult; ADX is NaN before index 2*period - 1, DI/DX before `period`
    """
    highs = high.to_numpy(dtype=float)
    lows = low.to_numpy(dtype=float)
    tr = calculate_true_range(high, low, close).to_numpy(dtype=float)
    n = len(highs)

    adx = np.full(n, np.nan)
    plus_di = np.full(n, np.nan)
    minus_di = np.full(n, np.nan)
    dx = np.full(n, np.nan)

    def _result() -> ADXResult:
        index = close.index
        return ADXResult(
            adx=pd.Series(adx, index=index),
            plus_di=pd.Series(plus_di, index=index),
            minus_di=pd.Series(minus_di, index=index),
            dx=pd.Series(dx, index=index),
        )

    if period <= 0 or n <= period:
        return _result()

    plus_dm = np.zeros(n)
    minus_dm = np.zeros(n)
    for i in range(1, n):
        up_move = highs[i] - highs[i - 1]
        down_move = lows[i - 1] - lows[i]
        if up_move > down_move and up_move > 0:
            plus_dm[i] = up_move
        if down_move > up_move and down_move > 0:
            minus_dm[i] = down_move

    smoothed_plus = plus_dm[1:period + 1].sum()
    smoothed_minus = minus_dm[1:period + 1].sum()
    smoothed_tr = tr[1:period + 1].sum()

    for i in range(period, n):
        if i > period:
            smoothed_plus = smoothed_plus - smoothed_plus / period + plus_dm[i]
            smoothed_minus = smoothed_minus - smoothed_minus / period + minus_dm[i]
            smoothed_tr = smoothed_tr - smoothed_tr / period + tr[i]

        if smoothed_tr == 0:
            plus_di[i] = 0.0
            minus_di[i] = 0.0
        else:
            plus_di[i] = 100 * smoothed_plus / smoothed_tr
            minus_di[i] = 100 * smoothed_minus / smoothed_tr

        di_sum = plus_di[i] + minus_di[i]
        dx[i] = 0.0 if di_sum == 0 else 100 * abs(plus_di[i] - minus_di[i]) / di_sum

    seed_index = 2 * period - 1
    if n <= seed_index:
        return _result()

    adx[seed_index] = dx[period:seed_index + 1].sum() / period
    for i in range(seed_index + 1, n):
        adx[i] = (adx[i - 1] * (period - 1) + dx[i]) / period

    return _result()


def get_latest_adx(adx_result: ADXResult) -> float:
    """
    Latest ADX value, or 0.0 when not warmed up.

    Args:
        adx_result: ADX calculation result

    Returns:
        Latest ADX value
    """
    if len(adx_result.adx) == 0 or pd.isna(adx_result.adx.iloc[-1]):
        return 0.0
    return float(adx_result.adx.iloc[-1])
