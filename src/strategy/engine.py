"""
Strategy selector.

Routes a (symbol, strategy id) request to the matching strategy and contains
every failure: transport errors and unexpected exceptions are logged and
turned into None, so a caller evaluating many symbols is never interrupted
by one of them.
"""

import traceback
from typing import Optional, Union

import structlog

from config.logging_config import evaluation_context
from config.settings import Settings, get_settings
from src.api.exchange_protocol import KlineFetchError, KlineProvider
from src.strategy.models import SignalResult, StrategyId
from src.strategy.regime import RegimeConfig
from src.strategy.structural_reversal import (
    StructuralReversalConfig,
    StructuralReversalStrategy,
)
from src.strategy.trend_regime import TrendRegimeConfig, TrendRegimeStrategy

logger = structlog.get_logger(__name__)


def build_trend_regime_config(settings: Settings) -> TrendRegimeConfig:
    """Map settings onto the trend regime strategy configuration."""
    return TrendRegimeConfig(
        regime_timeframe=settings.regime_timeframe,
        entry_timeframe=settings.entry_timeframe,
        candle_limit=settings.trend_candle_limit,
        entry_min_candles=settings.entry_min_candles,
        regime=RegimeConfig(
            ema_period=settings.regime_ema_period,
            adx_period=settings.adx_period,
            min_candles=settings.regime_min_candles,
            adx_strong_trend=settings.adx_strong_trend,
            slope_strong_trend=settings.ema_slope_strong_trend,
            adx_weak_trend=settings.adx_weak_trend,
            adx_strong_range=settings.adx_strong_range,
        ),
        entry_ema_period=settings.entry_ema_period,
        atr_period=settings.atr_period,
        range_lookback=settings.range_lookback,
        strong_trend_rr=settings.strong_trend_rr,
        weak_trend_rr=settings.weak_trend_rr,
        range_rr=settings.range_rr,
        reference_symbol=settings.reference_symbol,
    )


def build_structural_reversal_config(settings: Settings) -> StructuralReversalConfig:
    """Map settings onto the structural reversal strategy configuration."""
    return StructuralReversalConfig(
        structure_timeframe=settings.structure_timeframe,
        fallback_timeframe=settings.structure_fallback_timeframe,
        entry_timeframe=settings.structure_entry_timeframe,
        candle_limit=settings.structure_candle_limit,
        entry_candle_limit=settings.structure_entry_candle_limit,
        swing_window=settings.swing_window,
        rsi_period=settings.rsi_period,
        atr_period=settings.atr_period,
        recent_lookback=settings.range_lookback,
    )


class SignalEngine:
    """
    Stateless front door for both strategies.

    Holds no per-call state, so one engine can serve concurrent evaluations
    as long as the provider is safe to share.
    """

    def __init__(
        self,
        provider: KlineProvider,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the engine.

        Args:
            provider: Source of klines
            settings: Optional settings instance. If not provided, uses global settings.
        """
        if settings is None:
            settings = get_settings()

        self.provider = provider
        self.strategies = {
            StrategyId.TREND_REGIME: TrendRegimeStrategy(
                provider, build_trend_regime_config(settings)
            ),
            StrategyId.STRUCTURAL_REVERSAL: StructuralReversalStrategy(
                provider, build_structural_reversal_config(settings)
            ),
        }

    def evaluate(
        self,
        symbol: str,
        strategy_id: Union[StrategyId, str] = StrategyId.TREND_REGIME,
    ) -> Optional[SignalResult]:
        """
        Evaluate one instrument with the selected strategy.

        Args:
            symbol: Instrument (e.g., BTCUSDT)
            strategy_id: "trend_regime" or "structural_reversal"

        Returns:
            SignalResult, or None when there is nothing to report or the
            evaluation failed
        """
        symbol = symbol.strip().upper()

        try:
            strategy_key = StrategyId(strategy_id)
        except ValueError:
            logger.error("unknown_strategy", symbol=symbol, strategy_id=str(strategy_id))
            return None

        strategy = self.strategies[strategy_key]

        try:
            with evaluation_context(symbol, strategy_key.value):
                result = strategy.evaluate(symbol)
        except KlineFetchError as e:
            logger.warning(
                "signal_evaluation_failed",
                symbol=symbol,
                strategy=strategy_key.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None
        except Exception as e:
            logger.error(
                "signal_evaluation_error",
                symbol=symbol,
                strategy=strategy_key.value,
                error=str(e),
                error_type=type(e).__name__,
                traceback=traceback.format_exc(),
            )
            return None

        if result is None:
            logger.info("no_signal", symbol=symbol, strategy=strategy_key.value)
        else:
            logger.info(
                "signal_evaluated",
                symbol=symbol,
                strategy=strategy_key.value,
                regime=result.regime,
                direction=result.direction.value,
                actionable=result.is_actionable,
            )
        return result

    def evaluate_many(
        self,
        symbols: list[str],
        strategy_id: Union[StrategyId, str] = StrategyId.TREND_REGIME,
    ) -> dict[str, Optional[SignalResult]]:
        """Evaluate several instruments; failures map to None."""
        return {symbol: self.evaluate(symbol, strategy_id) for symbol in symbols}
