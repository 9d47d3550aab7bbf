"""
Shared value types for the signal engine.

SignalResult is the only thing a strategy hands back to its caller. A strategy
returns None when there is nothing to show, and a SignalResult with rr == 0 and
a *WAITING* / NO_IMPULSE tag when it is monitoring a computed zone that has not
confirmed yet.
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class Regime(str, Enum):
    """Market regime from higher timeframe ADX and EMA slope."""

    STRONG_TREND = "STRONG_TREND"
    WEAK_TREND = "WEAK_TREND"
    WEAK_RANGE = "WEAK_RANGE"
    STRONG_RANGE = "STRONG_RANGE"

    @property
    def is_trend(self) -> bool:
        return "TREND" in self.value

    @property
    def is_range(self) -> bool:
        return "RANGE" in self.value


class Direction(str, Enum):
    """Trade direction."""

    LONG = "LONG"
    SHORT = "SHORT"


class StrategyId(str, Enum):
    """Selectable strategies."""

    TREND_REGIME = "trend_regime"
    STRUCTURAL_REVERSAL = "structural_reversal"


# Setup tags emitted by the structural reversal strategy
LIQUIDITY_SWEEP_HIGH = "LIQUIDITY_SWEEP_HIGH"
LIQUIDITY_SWEEP_LOW = "LIQUIDITY_SWEEP_LOW"
RANGE_WAITING = "RANGE_WAITING"
NO_IMPULSE = "NO_IMPULSE"
PRZ_WAITING_SIGNAL = "PRZ_WAITING_SIGNAL"
WAITING_FOR_PRZ = "WAITING_FOR_PRZ"
PRZ_REVERSAL_PREFIX = "PRZ_REVERSAL_"

_NON_ACTIONABLE_MARKERS = ("WAITING", NO_IMPULSE)


def utc_now_iso() -> str:
    """Current UTC time in ISO-8601 format."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class SignalResult:
    """
    Trade recommendation produced by a strategy.

    entry_low <= entry_high always holds; use SignalResult.build() to get the
    bounds normalized.
    """

    symbol: str
    time: str
    regime: str
    price: float
    direction: Direction
    entry_low: float
    entry_high: float
    stop: float
    target: float
    rr: float
    logs: tuple[str, ...] = ()

    @classmethod
    def build(
        cls,
        symbol: str,
        regime: str,
        price: float,
        direction: Direction,
        entry_a: float,
        entry_b: float,
        stop: float,
        target: float,
        rr: float,
        logs: list[str],
        time: Optional[str] = None,
    ) -> "SignalResult":
        """Create a result with the entry zone normalized to (min, max)."""
        return cls(
            symbol=symbol,
            time=time or utc_now_iso(),
            regime=str(regime.value if isinstance(regime, Enum) else regime),
            price=float(price),
            direction=direction,
            entry_low=float(min(entry_a, entry_b)),
            entry_high=float(max(entry_a, entry_b)),
            stop=float(stop),
            target=float(target),
            rr=float(rr),
            logs=tuple(logs),
        )

    @classmethod
    def waiting(
        cls,
        symbol: str,
        regime: str,
        price: float,
        logs: list[str],
        direction: Direction = Direction.LONG,
    ) -> "SignalResult":
        """Zeroed monitoring result (no zone, stop or target yet)."""
        return cls.build(
            symbol=symbol,
            regime=regime,
            price=price,
            direction=direction,
            entry_a=0.0,
            entry_b=0.0,
            stop=0.0,
            target=0.0,
            rr=0.0,
            logs=logs,
        )

    @property
    def is_actionable(self) -> bool:
        """False for monitoring results (waiting tags and NO_IMPULSE)."""
        return not any(marker in self.regime for marker in _NON_ACTIONABLE_MARKERS)

    def to_dict(self) -> dict:
        """Plain dict for JSON consumers."""
        data = asdict(self)
        data["direction"] = self.direction.value
        data["logs"] = list(self.logs)
        data["is_actionable"] = self.is_actionable
        return data
