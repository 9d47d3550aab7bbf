"""
Trend regime strategy.

Two-stage pipeline:
1. Classify the market regime on the higher timeframe (ADX + EMA200 slope).
2. Build an entry zone on the entry timeframe:
   - Trending regimes: pullback zone 0.3-0.8 ATR against the side of EMA20
     the price sits on, stop 0.5 ATR beyond the zone, target from
     risk x reward (2.0 in a strong trend, 1.3 in a weak one).
   - Ranging regimes: fade the 20-bar range. A sell zone around the range
     high and a buy zone around the range low; whichever inner boundary is
     closer to price is traded with a fixed 1.5 reward ratio and the stop one
     ATR beyond the zone.

No state is kept between calls.
"""

from dataclasses import dataclass, field
from typing import Optional

import pandas as pd
import structlog

from src.api.exchange_protocol import KlineProvider
from src.indicators.atr import calculate_atr, get_latest_atr
from src.indicators.ema import calculate_ema
from src.indicators.levels import rolling_extremes
from src.strategy.models import Direction, Regime, SignalResult
from src.strategy.regime import RegimeConfig, detect_regime

logger = structlog.get_logger(__name__)

# Entry zone distances from price, in ATR, for trending regimes
_TREND_ZONE_FAR = 0.8
_TREND_ZONE_NEAR = 0.3
_TREND_STOP_BUFFER = 0.5

# Range zone buffers, in ATR
_REFERENCE_RANGE_BUFFER = 0.5
_RANGE_OUTER_BUFFER = 1.0
_RANGE_INNER_BUFFER = 0.8
_RANGE_STOP_BUFFER = 1.0


@dataclass
class TrendRegimeConfig:
    """Configuration for the trend regime strategy."""

    regime_timeframe: str = "4h"
    entry_timeframe: str = "15m"
    candle_limit: int = 1000
    entry_min_candles: int = 50
    regime: RegimeConfig = field(default_factory=RegimeConfig)

    entry_ema_period: int = 20
    atr_period: int = 14
    range_lookback: int = 20

    strong_trend_rr: float = 2.0
    weak_trend_rr: float = 1.3
    range_rr: float = 1.5

    # Instrument that gets symmetric range buffers
    reference_symbol: str = "BTCUSDT"


@dataclass
class _Zone:
    direction: Direction
    entry_a: float
    entry_b: float
    stop: float
    target: float
    rr: float


class TrendRegimeStrategy:
    """
    Regime-aware trend following / range fading strategy.
    """

    strategy_id = "trend_regime"

    def __init__(
        self,
        provider: KlineProvider,
        config: Optional[TrendRegimeConfig] = None,
    ):
        """
        Initialize the strategy.

        Args:
            provider: Source of klines
            config: Strategy configuration
        """
        self.provider = provider
        self.config = config or TrendRegimeConfig()

    def evaluate(self, symbol: str) -> Optional[SignalResult]:
        """
        Fetch both timeframes and evaluate.

        Raises:
            KlineFetchError: If candles cannot be retrieved
        """
        regime_klines = self.provider.get_klines(
            symbol, self.config.regime_timeframe, self.config.candle_limit
        )
        entry_klines = self.provider.get_klines(
            symbol, self.config.entry_timeframe, self.config.candle_limit
        )
        return self.evaluate_klines(symbol, regime_klines, entry_klines)

    def evaluate_klines(
        self,
        symbol: str,
        regime_klines: pd.DataFrame,
        entry_klines: pd.DataFrame,
    ) -> Optional[SignalResult]:
        """
        Evaluate already fetched klines.

        Args:
            symbol: Instrument being evaluated
            regime_klines: Higher timeframe klines
            entry_klines: Entry timeframe klines

        Returns:
            SignalResult, or None when history is insufficient or the regime
            is neither trending nor ranging
        """
        cfg = self.config

        if entry_klines is None or len(entry_klines) < cfg.entry_min_candles:
            logger.info(
                "trend_regime_insufficient_entry_data",
                symbol=symbol,
                candle_count=0 if entry_klines is None else len(entry_klines),
                required=cfg.entry_min_candles,
            )
            return None

        reading = detect_regime(regime_klines, cfg.regime)
        if reading is None:
            return None

        close = entry_klines["close"].astype(float)
        price = float(close.iloc[-1])
        ema = calculate_ema(close, cfg.entry_ema_period).iloc[-1]
        ema = price if pd.isna(ema) else float(ema)
        atr = get_latest_atr(
            calculate_atr(entry_klines["high"], entry_klines["low"], close, cfg.atr_period)
        )

        if reading.regime.is_trend:
            zone = self._trend_zone(reading.regime, price, ema, atr)
        elif reading.regime.is_range:
            zone = self._range_zone(symbol, entry_klines, price, atr)
        else:
            return None

        logs = [
            f"Analyzing: {symbol}",
            f"{cfg.regime_timeframe.upper()} Regime: {reading.regime.value}",
            f"{cfg.regime_timeframe.upper()} ADX: {reading.adx:.2f}",
            f"{cfg.regime_timeframe.upper()} EMA{cfg.regime.ema_period} Slope: {reading.slope:.4f}%",
            f"{cfg.entry_timeframe} Price: {price:.2f}",
            f"{cfg.entry_timeframe} ATR: {atr:.2f}",
            f"{cfg.entry_timeframe} EMA{cfg.entry_ema_period}: {ema:.2f}",
            f"Decision: {zone.direction.value} Signal Active",
        ]

        result = SignalResult.build(
            symbol=symbol,
            regime=reading.regime,
            price=price,
            direction=zone.direction,
            entry_a=zone.entry_a,
            entry_b=zone.entry_b,
            stop=zone.stop,
            target=zone.target,
            rr=zone.rr,
            logs=logs,
        )

        logger.info(
            "trend_regime_signal",
            symbol=symbol,
            regime=result.regime,
            direction=result.direction.value,
            entry_low=round(result.entry_low, 2),
            entry_high=round(result.entry_high, 2),
            stop=round(result.stop, 2),
            target=round(result.target, 2),
            rr=result.rr,
        )
        return result

    def _trend_zone(self, regime: Regime, price: float, ema: float, atr: float) -> _Zone:
        """Pullback zone on the trend side of EMA20."""
        sign = 1 if price > ema else -1
        rr = self.config.strong_trend_rr if regime == Regime.STRONG_TREND else self.config.weak_trend_rr

        far_edge = price - sign * atr * _TREND_ZONE_FAR
        near_edge = price - sign * atr * _TREND_ZONE_NEAR
        stop = far_edge - sign * atr * _TREND_STOP_BUFFER
        risk = abs(near_edge - stop)
        target = near_edge + sign * risk * rr

        return _Zone(
            direction=Direction.LONG if sign == 1 else Direction.SHORT,
            entry_a=far_edge,
            entry_b=near_edge,
            stop=stop,
            target=target,
            rr=rr,
        )

    def _range_zone(
        self,
        symbol: str,
        entry_klines: pd.DataFrame,
        price: float,
        atr: float,
    ) -> _Zone:
        """Fade whichever range boundary is closer to price."""
        extremes = rolling_extremes(
            entry_klines["high"], entry_klines["low"], self.config.range_lookback
        )
        rr = self.config.range_rr

        if symbol.upper() == self.config.reference_symbol:
            buffer = atr * _REFERENCE_RANGE_BUFFER
            sell_low, sell_high = extremes.high - buffer, extremes.high + buffer
            buy_low, buy_high = extremes.low - buffer, extremes.low + buffer
        else:
            sell_low = extremes.high - atr * _RANGE_OUTER_BUFFER
            sell_high = extremes.high + atr * _RANGE_INNER_BUFFER
            buy_low = extremes.low - atr * _RANGE_OUTER_BUFFER
            buy_high = extremes.low + atr * _RANGE_INNER_BUFFER

        # Exact tie goes to the short side
        if abs(price - sell_low) <= abs(price - buy_high):
            stop = sell_high + atr * _RANGE_STOP_BUFFER
            risk = abs(sell_high - stop)
            return _Zone(
                direction=Direction.SHORT,
                entry_a=sell_low,
                entry_b=sell_high,
                stop=stop,
                target=sell_high - risk * rr,
                rr=rr,
            )

        stop = buy_low - atr * _RANGE_STOP_BUFFER
        risk = abs(buy_high - stop)
        return _Zone(
            direction=Direction.LONG,
            entry_a=buy_low,
            entry_b=buy_high,
            stop=stop,
            target=buy_high + risk * rr,
            rr=rr,
        )
