"""
Structural reversal strategy.

Reads swing structure top-down and waits for a reaction inside the
Fibonacci Potential Reversal Zone (PRZ) of the latest impulse leg:

1. Higher timeframe (4h) swings and trend.
2. If 4h is RANGE, look for a local trend on the intermediate timeframe (1h).
   If that is RANGE too, switch to liquidity monitoring: flag a possible
   sweep when the 4h close is within one ATR of the last swing high / low.
3. Impulse leg of the active timeframe and its 0.618-0.786 PRZ.
4. Entry timeframe (15m) confirmation: an RSI divergence or an engulfing
   candle in the trend direction while price sits inside the PRZ.

Results that are still waiting on a trigger carry rr == 0 and a WAITING /
NO_IMPULSE tag; the zone, stop and target are reported where known so the
caller can keep monitoring.
"""

from dataclasses import dataclass
from typing import Optional

import pandas as pd
import structlog

from src.api.exchange_protocol import KlineProvider
from src.indicators.atr import calculate_atr, get_latest_atr
from src.indicators.levels import rolling_extremes
from src.indicators.rsi import calculate_rsi, get_latest_rsi
from src.strategy.models import (
    LIQUIDITY_SWEEP_HIGH,
    LIQUIDITY_SWEEP_LOW,
    NO_IMPULSE,
    PRZ_REVERSAL_PREFIX,
    PRZ_WAITING_SIGNAL,
    RANGE_WAITING,
    WAITING_FOR_PRZ,
    Direction,
    SignalResult,
)
from src.strategy.structure import (
    BEARISH_DIVERGENCE,
    BULLISH_DIVERGENCE,
    Trend,
    TrendResult,
    calculate_prz,
    detect_divergence,
    detect_engulfing,
    detect_trend,
    find_impulse_leg,
    find_swing_points,
)

logger = structlog.get_logger(__name__)

_SWEEP_ZONE_BUFFER = 0.5


@dataclass
class StructuralReversalConfig:
    """Configuration for the structural reversal strategy."""

    structure_timeframe: str = "4h"
    fallback_timeframe: str = "1h"
    entry_timeframe: str = "15m"

    candle_limit: int = 500
    entry_candle_limit: int = 200

    swing_window: int = 3
    rsi_period: int = 14
    atr_period: int = 14
    recent_lookback: int = 20


def _ratio(numerator: float, denominator: float) -> float:
    """Reward/risk ratio, 0 when the risk leg is degenerate."""
    if denominator == 0:
        return 0.0
    return numerator / denominator


def _fmt(values: list[float]) -> str:
    return ", ".join(f"{v:.2f}" for v in values[-3:])


class StructuralReversalStrategy:
    """
    Swing structure + PRZ reversal strategy with liquidity-sweep fallback.
    """

    strategy_id = "structural_reversal"

    def __init__(
        self,
        provider: KlineProvider,
        config: Optional[StructuralReversalConfig] = None,
    ):
        self.provider = provider
        self.config = config or StructuralReversalConfig()

    def _fetch(self, symbol: str, interval: str, limit: int) -> Optional[pd.DataFrame]:
        """Fetch klines, or None when fewer than `limit` bars come back."""
        klines = self.provider.get_klines(symbol, interval, limit)
        if klines is None or len(klines) < limit:
            logger.info(
                "structural_insufficient_data",
                symbol=symbol,
                interval=interval,
                candle_count=0 if klines is None else len(klines),
                required=limit,
            )
            return None
        return klines

    def evaluate(self, symbol: str) -> Optional[SignalResult]:
        """
        Run the full top-down analysis for one instrument.

        Args:
            symbol: Instrument (e.g., BTCUSDT)

        Returns:
            SignalResult (possibly a waiting result), or None on
            insufficient history

        Raises:
            KlineFetchError: If candles cannot be retrieved
        """
        cfg = self.config
        htf_label = cfg.structure_timeframe.upper()
        logs = [f"Analyzing: {symbol}"]

        htf = self._fetch(symbol, cfg.structure_timeframe, cfg.candle_limit)
        if htf is None:
            return None

        htf_swings = find_swing_points(htf, cfg.swing_window)
        htf_trend = detect_trend(htf, htf_swings)
        htf_rsi = get_latest_rsi(calculate_rsi(htf["close"], cfg.rsi_period))

        logs.append(f"{htf_label} Trend: {htf_trend.trend.value}")
        logs.append(f"Last 3 Swing Highs ({htf_label}): {_fmt(htf_trend.swing_highs)}")
        logs.append(f"Last 3 Swing Lows ({htf_label}): {_fmt(htf_trend.swing_lows)}")
        logs.append(f"Current {htf_label} RSI: {htf_rsi:.2f}")

        trend = htf_trend.trend
        active_klines, active_swings = htf, htf_swings

        if trend is Trend.RANGE:
            itf_label = cfg.fallback_timeframe.upper()
            logs.append(f"{htf_label} Structure Not Clean (Transitional Market)")
            logs.append(f"Scanning {itf_label} for a local trend")

            itf = self._fetch(symbol, cfg.fallback_timeframe, cfg.candle_limit)
            if itf is None:
                return None

            itf_swings = find_swing_points(itf, cfg.swing_window)
            itf_trend = detect_trend(itf, itf_swings)

            if itf_trend.trend is Trend.RANGE:
                logs.append(f"{itf_label} still RANGE, monitoring range liquidity")
                return self._liquidity_sweep(symbol, htf, htf_trend, logs)

            logs.append(f"Found {itf_label} local trend: {itf_trend.trend.value}")
            trend = itf_trend.trend
            active_klines, active_swings = itf, itf_swings

        direction = trend.direction
        impulse = find_impulse_leg(active_klines, active_swings, direction)
        if impulse is None:
            logs.append("Could not find impulse leg")
            return SignalResult.waiting(
                symbol, NO_IMPULSE, float(active_klines["close"].iloc[-1]), logs
            )

        prz = calculate_prz(impulse.low, impulse.high, direction)
        logs.append(f"Impulse Leg Low: {impulse.low:.2f}")
        logs.append(f"Impulse Leg High: {impulse.high:.2f}")
        logs.append(f"PRZ Zone: {prz.low:.2f} - {prz.high:.2f}")

        ltf = self._fetch(symbol, cfg.entry_timeframe, cfg.entry_candle_limit)
        if ltf is None:
            return None

        ltf_label = cfg.entry_timeframe
        price = float(ltf["close"].iloc[-1])
        ltf_rsi = get_latest_rsi(calculate_rsi(ltf["close"], cfg.rsi_period))
        ltf_atr = get_latest_atr(
            calculate_atr(ltf["high"], ltf["low"], ltf["close"], cfg.atr_period)
        )
        logs.append(f"{ltf_label} Current Price: {price:.2f}")
        logs.append(f"{ltf_label} RSI: {ltf_rsi:.2f}")

        divergence = detect_divergence(ltf, cfg.rsi_period, cfg.swing_window)
        engulfing = detect_engulfing(ltf)
        logs.append(f"{ltf_label} Divergence: {divergence or 'None'}")
        logs.append(f"Bullish Engulfing: {engulfing.bullish}")
        logs.append(f"Bearish Engulfing: {engulfing.bearish}")

        recent = rolling_extremes(ltf["high"], ltf["low"], cfg.recent_lookback)
        logs.append(f"{ltf_label} Recent High: {recent.high:.2f}")
        logs.append(f"{ltf_label} Recent Low: {recent.low:.2f}")
        logs.append(f"BOS Up: {price > recent.high}")
        logs.append(f"BOS Down: {price < recent.low}")

        in_prz = prz.contains(price)

        if direction == "UP" and in_prz:
            logs.append("LONG PRZ ACTIVE")
            if divergence == BULLISH_DIVERGENCE or engulfing.bullish:
                return self._reversal(
                    symbol, trend, price, Direction.LONG, prz.low, prz.high,
                    stop=impulse.low,
                    target=impulse.high,
                    rr=_ratio(impulse.high - price, price - impulse.low),
                    atr=ltf_atr,
                    logs=logs,
                )
        elif direction == "DOWN" and in_prz:
            logs.append("SHORT PRZ ACTIVE")
            if divergence == BEARISH_DIVERGENCE or engulfing.bearish:
                return self._reversal(
                    symbol, trend, price, Direction.SHORT, prz.low, prz.high,
                    stop=impulse.high,
                    target=impulse.low,
                    rr=_ratio(price - impulse.low, impulse.high - price),
                    atr=ltf_atr,
                    logs=logs,
                )
        else:
            logs.append("Waiting for PRZ touch")

        is_up = direction == "UP"
        return SignalResult.build(
            symbol=symbol,
            regime=PRZ_WAITING_SIGNAL if in_prz else WAITING_FOR_PRZ,
            price=price,
            direction=Direction.LONG if is_up else Direction.SHORT,
            entry_a=prz.low,
            entry_b=prz.high,
            stop=impulse.low if is_up else impulse.high,
            target=impulse.high if is_up else impulse.low,
            rr=0.0,
            logs=logs,
        )

    def _reversal(
        self,
        symbol: str,
        trend: Trend,
        price: float,
        direction: Direction,
        entry_a: float,
        entry_b: float,
        stop: float,
        target: float,
        rr: float,
        atr: float,
        logs: list[str],
    ) -> SignalResult:
        logger.info(
            "prz_reversal_signal",
            symbol=symbol,
            trend=trend.value,
            direction=direction.value,
            price=round(price, 2),
            atr=round(atr, 2),
            rr=round(rr, 2),
        )
        return SignalResult.build(
            symbol=symbol,
            regime=f"{PRZ_REVERSAL_PREFIX}{trend.value}",
            price=price,
            direction=direction,
            entry_a=entry_a,
            entry_b=entry_b,
            stop=stop,
            target=target,
            rr=rr,
            logs=logs,
        )

    def _liquidity_sweep(
        self,
        symbol: str,
        htf: pd.DataFrame,
        htf_trend: TrendResult,
        logs: list[str],
    ) -> SignalResult:
        """
        Range monitoring on the higher timeframe.

        Flags a potential sweep of the last swing high (short) or swing low
        (long) when the close is within one ATR of it.
        """
        range_high = (
            htf_trend.swing_highs[-1] if htf_trend.swing_highs else float(htf["high"].max())
        )
        range_low = (
            htf_trend.swing_lows[-1] if htf_trend.swing_lows else float(htf["low"].min())
        )

        logs.append(f"Liquidity High (potential short zone): {range_high:.2f}")
        logs.append(f"Liquidity Low (potential long zone): {range_low:.2f}")
        logs.append("Waiting for price to reach a boundary and sweep it")

        price = float(htf["close"].iloc[-1])
        atr = get_latest_atr(
            calculate_atr(htf["high"], htf["low"], htf["close"], self.config.atr_period)
        )
        buffer = atr * _SWEEP_ZONE_BUFFER
        rr = _ratio(range_high - range_low, atr)

        if abs(price - range_high) < atr:
            logger.info("liquidity_sweep_high", symbol=symbol, level=range_high, atr=atr)
            return SignalResult.build(
                symbol=symbol,
                regime=LIQUIDITY_SWEEP_HIGH,
                price=price,
                direction=Direction.SHORT,
                entry_a=range_high - buffer,
                entry_b=range_high + buffer,
                stop=range_high + atr,
                target=range_low,
                rr=rr,
                logs=logs,
            )

        if abs(price - range_low) < atr:
            logger.info("liquidity_sweep_low", symbol=symbol, level=range_low, atr=atr)
            return SignalResult.build(
                symbol=symbol,
                regime=LIQUIDITY_SWEEP_LOW,
                price=price,
                direction=Direction.LONG,
                entry_a=range_low - buffer,
                entry_b=range_low + buffer,
                stop=range_low - atr,
                target=range_high,
                rr=rr,
                logs=logs,
            )

        return SignalResult.waiting(symbol, RANGE_WAITING, price, logs)
