"""
Market regime detection on the higher timeframe.

Combines trend strength (ADX) with trend steepness (EMA slope) to label the
market as trending or ranging:

    1. ADX > 25 and |slope| > 0.05%  -> STRONG_TREND
    2. ADX > 20                      -> WEAK_TREND
    3. ADX < 18                      -> STRONG_RANGE
    4. otherwise                     -> WEAK_RANGE

The rules are evaluated in that order and the first match wins. The regime
is recomputed from scratch on every evaluation; no history is kept.
"""

from dataclasses import dataclass
from typing import Optional

import pandas as pd
import structlog

from src.indicators.adx import calculate_adx, get_latest_adx
from src.indicators.ema import calculate_ema, get_ema_slope
from src.strategy.models import Regime

logger = structlog.get_logger(__name__)


@dataclass
class RegimeConfig:
    """Configuration for regime classification."""

    ema_period: int = 200
    adx_period: int = 14
    min_candles: int = 200
    adx_strong_trend: float = 25.0
    slope_strong_trend: float = 0.05
    adx_weak_trend: float = 20.0
    adx_strong_range: float = 18.0


@dataclass
class RegimeReading:
    """Regime plus the indicator values it was derived from."""

    regime: Regime
    adx: float
    slope: float
    ema: float


def classify_regime(
    adx: float,
    slope: float,
    config: Optional[RegimeConfig] = None,
) -> Regime:
    """
    Map ADX and EMA slope to a regime.

    Args:
        adx: Latest ADX value
        slope: EMA slope in percent per bar
        config: Thresholds (defaults: 25 / 0.05 / 20 / 18)

    Returns:
        Regime label
    """
    config = config or RegimeConfig()

    if adx > config.adx_strong_trend and abs(slope) > config.slope_strong_trend:
        return Regime.STRONG_TREND
    if adx > config.adx_weak_trend:
        return Regime.WEAK_TREND
    if adx < config.adx_strong_range:
        return Regime.STRONG_RANGE
    return Regime.WEAK_RANGE


def detect_regime(
    klines: pd.DataFrame,
    config: Optional[RegimeConfig] = None,
) -> Optional[RegimeReading]:
    """
    Classify the regime at the latest bar of a higher timeframe series.

    Args:
        klines: Higher timeframe DataFrame with high/low/close columns
        config: Regime configuration

    Returns:
        RegimeReading, or None when fewer than `min_candles` bars are available
    """
    config = config or RegimeConfig()

    if klines is None or len(klines) < config.min_candles:
        logger.info(
            "regime_insufficient_data",
            candle_count=0 if klines is None else len(klines),
            required=config.min_candles,
        )
        return None

    ema = calculate_ema(klines["close"], config.ema_period)
    adx_result = calculate_adx(
        klines["high"], klines["low"], klines["close"], config.adx_period
    )

    adx = get_latest_adx(adx_result)
    slope = get_ema_slope(ema)
    latest_ema = ema.iloc[-1]

    regime = classify_regime(adx, slope, config)

    logger.debug(
        "regime_detected",
        regime=regime.value,
        adx=round(adx, 2),
        slope=round(slope, 4),
    )

    return RegimeReading(
        regime=regime,
        adx=adx,
        slope=slope,
        ema=0.0 if pd.isna(latest_ema) else float(latest_ema),
    )
