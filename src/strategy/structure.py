"""
Price structure detection: swing points, swing trend, impulse legs,
Fibonacci reversal zones, RSI divergence and engulfing candles.

Swing points:
    Bar i is a swing high when its high equals the highest high of the
    symmetric window [i - n, i + n]; swing low likewise on lows. Every bar is
    evaluated on its own window, so equal highs can all qualify. Bars within
    n of either edge have an incomplete window and are never flagged.

Trend from swings:
    BULLISH when the last two swing highs AND the last two swing lows are
    both strictly higher; BEARISH when both strictly lower; RANGE otherwise.

Potential Reversal Zone (PRZ):
    The 0.618-0.786 Fibonacci retracement of the latest impulse leg:
        UP:   [high - diff * 0.786, high - diff * 0.618]
        DOWN: [low + diff * 0.618,  low + diff * 0.786]
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import pandas as pd

from src.indicators.rsi import calculate_rsi

FIB_SHALLOW = 0.618
FIB_DEEP = 0.786

BULLISH_DIVERGENCE = "BULLISH_DIV"
BEARISH_DIVERGENCE = "BEARISH_DIV"


class Trend(str, Enum):
    """Trend classification from swing structure."""

    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    RANGE = "RANGE"

    @property
    def direction(self) -> Optional[str]:
        """UP / DOWN for trending structure, None for RANGE."""
        if self is Trend.BULLISH:
            return "UP"
        if self is Trend.BEARISH:
            return "DOWN"
        return None


@dataclass
class SwingPoints:
    """Boolean swing flags aligned with the bar index."""

    highs: pd.Series
    lows: pd.Series


@dataclass
class TrendResult:
    """Trend plus the swing prices it was derived from."""

    trend: Trend
    swing_highs: list[float] = field(default_factory=list)
    swing_lows: list[float] = field(default_factory=list)

    @property
    def direction(self) -> Optional[str]:
        return self.trend.direction


@dataclass
class ImpulseLeg:
    """Most recent swing low / swing high pair."""

    low: float
    high: float


@dataclass
class PRZ:
    """Potential Reversal Zone."""

    low: float
    high: float

    def contains(self, price: float) -> bool:
        return min(self.low, self.high) <= price <= max(self.low, self.high)


@dataclass
class EngulfingResult:
    """Engulfing flags for the last two bars."""

    bullish: bool
    bearish: bool


def find_swing_points(klines: pd.DataFrame, window: int = 3) -> SwingPoints:
    """
    Flag swing highs and lows over a symmetric window.

    Args:
        klines: DataFrame with high/low columns
        window: Bars on each side of the candidate (default: 3)

    Returns:
        SwingPoints with boolean series aligned to klines.index
    """
    size = 2 * window + 1
    high = klines["high"].astype(float)
    low = klines["low"].astype(float)

    # Centered windows are NaN near the edges, so edge bars compare False
    window_high = high.rolling(window=size, center=True).max()
    window_low = low.rolling(window=size, center=True).min()

    return SwingPoints(
        highs=(high == window_high).astype(bool),
        lows=(low == window_low).astype(bool),
    )


def detect_trend(klines: pd.DataFrame, swings: SwingPoints) -> TrendResult:
    """
    Classify trend from the last two swing highs and lows.

    Args:
        klines: DataFrame with high/low columns
        swings: Swing points for the same bars

    Returns:
        TrendResult with trend and the swing high/low price lists
    """
    highs = klines["high"][swings.highs].astype(float).tolist()
    lows = klines["low"][swings.lows].astype(float).tolist()

    if len(highs) < 2 or len(lows) < 2:
        return TrendResult(Trend.RANGE, highs, lows)

    prev_high, last_high = highs[-2], highs[-1]
    prev_low, last_low = lows[-2], lows[-1]

    if last_high > prev_high and last_low > prev_low:
        trend = Trend.BULLISH
    elif last_high < prev_high and last_low < prev_low:
        trend = Trend.BEARISH
    else:
        trend = Trend.RANGE

    return TrendResult(trend, highs, lows)


def find_impulse_leg(
    klines: pd.DataFrame,
    swings: SwingPoints,
    direction: Optional[str],
) -> Optional[ImpulseLeg]:
    """
    Latest swing low and swing high as the impulse leg.

    The direction only gates whether a leg exists (UP / DOWN); it does not
    change which swing points are picked.

    Args:
        klines: DataFrame with high/low columns
        swings: Swing points for the same bars
        direction: "UP", "DOWN" or None

    Returns:
        ImpulseLeg, or None when a swing high or low is missing
    """
    if direction not in ("UP", "DOWN"):
        return None

    highs = klines["high"][swings.highs]
    lows = klines["low"][swings.lows]

    if highs.empty or lows.empty:
        return None

    return ImpulseLeg(low=float(lows.iloc[-1]), high=float(highs.iloc[-1]))


def calculate_prz(low: float, high: float, direction: Optional[str]) -> PRZ:
    """
    Fibonacci 0.618 / 0.786 retracement zone of an impulse leg.

    Args:
        low: Impulse leg low
        high: Impulse leg high
        direction: "UP" retraces down from the high, anything else retraces
                   up from the low

    Returns:
        PRZ bounds
    """
    diff = high - low
    if direction == "UP":
        return PRZ(low=high - diff * FIB_DEEP, high=high - diff * FIB_SHALLOW)
    return PRZ(low=low + diff * FIB_SHALLOW, high=low + diff * FIB_DEEP)


def detect_divergence(
    klines: pd.DataFrame,
    rsi_period: int = 14,
    window: int = 3,
) -> Optional[str]:
    """
    RSI divergence on the two most recent swing lows / highs.

    Bullish: price makes a lower low while RSI makes a higher low.
    Bearish: price makes a higher high while RSI makes a lower high.
    Bullish is checked first.

    Args:
        klines: DataFrame with high/low/close columns
        rsi_period: RSI period (default: 14)
        window: Swing window (default: 3)

    Returns:
        "BULLISH_DIV", "BEARISH_DIV" or None
    """
    rsi = calculate_rsi(klines["close"], rsi_period)
    swings = find_swing_points(klines, window)

    lows = klines["low"][swings.lows]
    if len(lows) >= 2:
        rsi_lows = rsi[swings.lows]
        if lows.iloc[-1] < lows.iloc[-2] and rsi_lows.iloc[-1] > rsi_lows.iloc[-2]:
            return BULLISH_DIVERGENCE

    highs = klines["high"][swings.highs]
    if len(highs) >= 2:
        rsi_highs = rsi[swings.highs]
        if highs.iloc[-1] > highs.iloc[-2] and rsi_highs.iloc[-1] < rsi_highs.iloc[-2]:
            return BEARISH_DIVERGENCE

    return None


def detect_engulfing(klines: pd.DataFrame) -> EngulfingResult:
    """
    Two-candle engulfing pattern on the last two bars.

    Bullish: previous candle bearish, current bullish, and the current body
    contains the previous body. Bearish is the mirror.

    Args:
        klines: DataFrame with open/close columns

    Returns:
        EngulfingResult (both False with fewer than two bars)
    """
    if len(klines) < 2:
        return EngulfingResult(bullish=False, bearish=False)

    prev = klines.iloc[-2]
    last = klines.iloc[-1]

    bullish = (
        prev["close"] < prev["open"]
        and last["close"] > last["open"]
        and last["close"] > prev["open"]
        and last["open"] < prev["close"]
    )
    bearish = (
        prev["close"] > prev["open"]
        and last["close"] < last["open"]
        and last["open"] > prev["close"]
        and last["close"] < prev["open"]
    )

    return EngulfingResult(bullish=bool(bullish), bearish=bool(bearish))
