"""
Tests for the trend regime strategy.

Tests cover:
- Trend pullback zones (long and short)
- Range zones for regular and reference instruments (tie goes short)
- Insufficient history on either timeframe
- Fetch parameters passed to the provider
- Output invariants and trace logs
"""

import pytest
from freezegun import freeze_time

from src.strategy.models import Direction, Regime
from src.strategy.trend_regime import TrendRegimeConfig, TrendRegimeStrategy

from conftest import FakeKlineProvider, make_klines


@pytest.fixture
def uptrend_frames():
    return {
        "4h": make_klines([100 + i for i in range(300)], freq="4h"),
        "15m": make_klines([100 + i for i in range(100)]),
    }


@pytest.fixture
def downtrend_frames():
    return {
        "4h": make_klines([1000 - i for i in range(300)], freq="4h"),
        "15m": make_klines([500 - i for i in range(100)]),
    }


@pytest.fixture
def range_frames():
    return {
        "4h": make_klines([100.0] * 300, freq="4h"),
        "15m": make_klines([100.0] * 100),
    }


def _strategy(frames, config=None):
    return TrendRegimeStrategy(FakeKlineProvider(frames), config)


# ============================================================================
# Trend Branch Tests
# ============================================================================

def test_strong_uptrend_long_pullback(uptrend_frames):
    """Price above EMA20 in a strong trend gives a long pullback zone."""
    result = _strategy(uptrend_frames).evaluate("ETHUSDT")

    assert result.regime == Regime.STRONG_TREND.value
    assert result.direction == Direction.LONG
    assert result.price == pytest.approx(199.0)
    # ATR = 2: zone 199 - 1.6 .. 199 - 0.6, stop 1 below, risk 2, rr 2
    assert result.entry_low == pytest.approx(197.4)
    assert result.entry_high == pytest.approx(198.4)
    assert result.stop == pytest.approx(196.4)
    assert result.target == pytest.approx(202.4)
    assert result.rr == 2.0


def test_strong_downtrend_short_pullback(downtrend_frames):
    """Price below EMA20 gives a short pullback zone above price."""
    result = _strategy(downtrend_frames).evaluate("ETHUSDT")

    assert result.direction == Direction.SHORT
    assert result.price == pytest.approx(401.0)
    assert result.entry_low == pytest.approx(401.6)
    assert result.entry_high == pytest.approx(402.6)
    assert result.stop == pytest.approx(403.6)
    assert result.target == pytest.approx(397.6)


def test_weak_trend_uses_weak_reward(uptrend_frames):
    """Weak trend regimes use the 1.3 reward ratio."""
    config = TrendRegimeConfig()
    # Push the strong threshold out of reach
    config.regime.adx_strong_trend = 100.0

    result = _strategy(uptrend_frames, config).evaluate("ETHUSDT")

    assert result.regime == Regime.WEAK_TREND.value
    assert result.rr == pytest.approx(1.3)
    assert result.target == pytest.approx(198.4 + 2.0 * 1.3)


# ============================================================================
# Range Branch Tests
# ============================================================================

def test_range_regular_instrument_long(range_frames):
    """Buy zone is closer to price for a regular instrument."""
    result = _strategy(range_frames).evaluate("ETHUSDT")

    assert result.regime == Regime.STRONG_RANGE.value
    assert result.direction == Direction.LONG
    # High 101, low 99, ATR 2: buy zone 97 .. 100.6
    assert result.entry_low == pytest.approx(97.0)
    assert result.entry_high == pytest.approx(100.6)
    assert result.stop == pytest.approx(95.0)
    assert result.target == pytest.approx(109.0)
    assert result.rr == 1.5


def test_range_reference_instrument_tie_goes_short(range_frames):
    """Symmetric buffers put price equidistant from both zones; short wins."""
    result = _strategy(range_frames).evaluate("BTCUSDT")

    assert result.direction == Direction.SHORT
    assert result.entry_low == pytest.approx(100.0)
    assert result.entry_high == pytest.approx(102.0)
    assert result.stop == pytest.approx(104.0)
    assert result.target == pytest.approx(99.0)


def test_range_reference_symbol_configurable(range_frames):
    """Reference instrument comes from config."""
    config = TrendRegimeConfig(reference_symbol="ETHUSDT")
    result = _strategy(range_frames, config).evaluate("ETHUSDT")

    assert result.direction == Direction.SHORT
    assert result.entry_high == pytest.approx(102.0)


# ============================================================================
# Insufficient Data Tests
# ============================================================================

def test_insufficient_regime_history(uptrend_frames):
    """Fewer than 200 higher timeframe bars gives no result."""
    uptrend_frames["4h"] = uptrend_frames["4h"].head(100)
    assert _strategy(uptrend_frames).evaluate("ETHUSDT") is None


def test_insufficient_entry_history(uptrend_frames):
    """Fewer than 50 entry bars gives no result."""
    uptrend_frames["15m"] = uptrend_frames["15m"].head(49)
    assert _strategy(uptrend_frames).evaluate("ETHUSDT") is None


# ============================================================================
# Provider / Output Tests
# ============================================================================

def test_fetches_both_timeframes_with_limit(uptrend_frames):
    """Both timeframes are requested with the configured limit."""
    provider = FakeKlineProvider(uptrend_frames)
    TrendRegimeStrategy(provider).evaluate("ETHUSDT")

    assert provider.calls == [("ETHUSDT", "4h", 1000), ("ETHUSDT", "15m", 1000)]


@freeze_time("2024-05-01 12:00:00")
def test_result_time_is_utc_iso(uptrend_frames):
    """Signal time is the evaluation time in UTC."""
    result = _strategy(uptrend_frames).evaluate("ETHUSDT")
    assert result.time == "2024-05-01T12:00:00+00:00"


def test_result_logs_trace_decision(uptrend_frames):
    """Logs walk through the inputs to the decision."""
    result = _strategy(uptrend_frames).evaluate("ETHUSDT")

    assert result.logs[0] == "Analyzing: ETHUSDT"
    assert "4H Regime: STRONG_TREND" in result.logs
    assert "4H ADX: 100.00" in result.logs
    assert "15m ATR: 2.00" in result.logs
    assert result.logs[-1] == "Decision: LONG Signal Active"


@pytest.mark.parametrize("frames", ["uptrend_frames", "downtrend_frames", "range_frames"])
def test_entry_zone_ordered_and_stop_outside(frames, request):
    """entry_low <= entry_high and the stop sits outside the zone."""
    result = _strategy(request.getfixturevalue(frames)).evaluate("SOLUSDT")

    assert result.entry_low <= result.entry_high
    if result.direction == Direction.LONG:
        assert result.stop < result.entry_low
        assert result.target > result.entry_high
    else:
        assert result.stop > result.entry_high
        assert result.target < result.entry_low
