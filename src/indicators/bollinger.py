"""
Bollinger Bands indicator.

Bollinger Bands are a volatility indicator that consists of three bands:
- Middle Band: Simple Moving Average (SMA) of price
- Upper Band: Middle Band + (standard deviation * multiplier)
- Lower Band: Middle Band - (standard deviation * multiplier)

Algorithm:
    Middle Band = SMA(price, period)
    Standard Deviation = population STD of the trailing window (divide by
                         period, not period - 1)
    Upper Band = Middle + (StdDev * multiplier)
    Lower Band = Middle - (StdDev * multiplier)

    Derived metrics:
    - Bandwidth = (Upper - Lower) / Middle
    - %B (Percent B) = (Price - Lower) / (Upper - Lower)
      %B = 0.5 when the bands converge (flat window).

Parameters:
    - period: 20 (standard)
    - std_dev: 2.0 (standard)
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd

from src.indicators.ema import calculate_sma

# Epsilon for floating point comparison (band convergence detection)
_BANDWIDTH_EPSILON = 1e-10


@dataclass
class BollingerResult:
    """Bollinger Bands calculation result."""

    upper_band: pd.Series
    middle_band: pd.Series
    lower_band: pd.Series
    bandwidth: pd.Series  # (upper - lower) / middle
    percent_b: pd.Series  # (price - lower) / (upper - lower)


def calculate_bollinger_bands(
    prices: pd.Series,
    period: int = 20,
    std_dev: float = 2.0,
) -> BollingerResult:
    """
    Calculate Bollinger Bands.

    Args:
        prices: Series of closing prices
        period: SMA period (default: 20)
        std_dev: Standard deviation multiplier (default: 2.0)

    Returns:
        BollingerResult with all band values and derived metrics
    """
    prices = prices.astype(float)
    middle_band = calculate_sma(prices, period)

    if period <= 0:
        rolling_std = pd.Series(np.nan, index=prices.index)
    else:
        rolling_std = prices.rolling(window=period).std(ddof=0)

    half_width = rolling_std * std_dev
    upper_band = middle_band + half_width
    lower_band = middle_band - half_width

    bandwidth = (upper_band - lower_band) / middle_band.replace(0, np.nan)

    band_width = upper_band - lower_band
    # When bandwidth is 0, set %B to 0.5 (middle) to avoid inf/nan
    percent_b = pd.Series(
        np.where(
            band_width.abs() < _BANDWIDTH_EPSILON,
            0.5,
            (prices - lower_band) / band_width,
        ),
        index=prices.index,
    )

    return BollingerResult(
        upper_band=upper_band,
        middle_band=middle_band,
        lower_band=lower_band,
        bandwidth=bandwidth,
        percent_b=percent_b,
    )
