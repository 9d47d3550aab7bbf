"""
Pytest configuration and shared fixtures for signal engine tests.
"""

import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from unittest.mock import MagicMock
import pandas as pd
import numpy as np

# Silence structlog during tests
import structlog

from src.api.exchange_protocol import KlineFetchError


def _mock_logger_factory(*args):
    """Factory that creates mock loggers for testing."""
    mock = MagicMock()
    # Configure mock methods to return the mock itself (for chaining)
    mock.bind.return_value = mock
    return mock


structlog.configure(
    processors=[],
    logger_factory=_mock_logger_factory,
)


# ============================================================================
# Helpers
# ============================================================================

def make_klines(closes, spread=1.0, opens=None, start="2024-01-01", freq="15min"):
    """
    Build a kline DataFrame from a list of closes.

    high/low are close +/- spread; open defaults to the previous close.
    """
    closes = [float(c) for c in closes]
    if opens is None:
        opens = [closes[0]] + closes[:-1]
    return pd.DataFrame({
        "timestamp": pd.date_range(start, periods=len(closes), freq=freq, tz="UTC"),
        "open": [float(o) for o in opens],
        "high": [c + spread for c in closes],
        "low": [c - spread for c in closes],
        "close": closes,
        "volume": [1000.0] * len(closes),
    })


class FakeKlineProvider:
    """
    In-memory KlineProvider keyed by interval.

    A value may be a DataFrame or an exception instance to raise.
    """

    def __init__(self, frames: dict):
        self.frames = frames
        self.calls: list[tuple[str, str, int]] = []

    def get_klines(self, symbol: str, interval: str, limit: int) -> pd.DataFrame:
        self.calls.append((symbol, interval, limit))
        frame = self.frames.get(interval)
        if frame is None:
            raise KlineFetchError(f"no data for {symbol} {interval}")
        if isinstance(frame, Exception):
            raise frame
        return frame.tail(limit).reset_index(drop=True)


# ============================================================================
# Shared Fixtures
# ============================================================================

@pytest.fixture
def sample_ohlcv_data():
    """Generate sample OHLCV market data for testing indicators."""
    def _generate(length=100, base_price=100.0, volatility=0.02):
        """
        Generate realistic OHLCV data.

        Args:
            length: Number of candles
            base_price: Starting price
            volatility: Price volatility (0.01 = 1%)
        """
        np.random.seed(42)  # Deterministic for tests

        prices = []
        current = base_price

        for _ in range(length):
            # Random walk with drift
            change = np.random.randn() * volatility * current
            current = current + change
            prices.append(current)

        # Generate OHLCV from prices
        data = {
            'open': [],
            'high': [],
            'low': [],
            'close': [],
            'volume': []
        }

        for price in prices:
            o = price * (1 + np.random.uniform(-0.005, 0.005))
            c = price * (1 + np.random.uniform(-0.005, 0.005))
            h = max(o, c) * (1 + abs(np.random.uniform(0, 0.01)))
            l = min(o, c) * (1 - abs(np.random.uniform(0, 0.01)))
            v = np.random.uniform(1000, 10000)

            data['open'].append(o)
            data['high'].append(h)
            data['low'].append(l)
            data['close'].append(c)
            data['volume'].append(v)

        return pd.DataFrame(data)

    return _generate


@pytest.fixture
def rising_klines():
    """Steady uptrend: close 100 + i, high/low +/- 1."""
    def _generate(length=300):
        return make_klines([100 + i for i in range(length)])
    return _generate


@pytest.fixture
def flat_klines():
    """No-trend market: constant close, high/low +/- 1."""
    def _generate(length=300, price=100.0):
        return make_klines([price] * length)
    return _generate


@pytest.fixture
def fake_provider():
    """Factory for FakeKlineProvider."""
    return FakeKlineProvider
