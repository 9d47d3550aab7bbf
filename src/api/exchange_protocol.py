"""
Kline provider protocol and shared data handling.

Defines the common interface every market data source implements, so the
strategies can be fed from Binance, KuCoin, a fallback chain of both, or a
test double interchangeably.
"""

from typing import Optional, Protocol

import pandas as pd
import requests

KLINE_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]


class KlineFetchError(Exception):
    """Raised when klines cannot be retrieved from any source."""
    pass


def is_retryable(exc: BaseException) -> bool:
    """
    Tell transient transport failures from permanent ones.

    HTTP 4xx responses (bad symbol, bad interval) fail the same way on every
    attempt and are not retried; 429 rate limiting is.
    """
    if isinstance(exc, requests.exceptions.HTTPError):
        status = getattr(exc.response, "status_code", None)
        if isinstance(status, int) and 400 <= status < 500 and status != 429:
            return False
    return True


class KlineProvider(Protocol):
    """
    Protocol defining the interface for kline (candle) sources.
    """

    def get_klines(
        self,
        symbol: str,
        interval: str,
        limit: int,
    ) -> pd.DataFrame:
        """
        Get historical OHLCV candle data.

        Args:
            symbol: Instrument in exchange-native concatenated form (e.g., BTCUSDT)
            interval: Candle size (15m, 1h, 4h, 1d, ...)
            limit: Number of candles to fetch

        Returns:
            DataFrame with columns: timestamp, open, high, low, close, volume,
            ascending by timestamp with no duplicate timestamps

        Raises:
            KlineFetchError: If the candles cannot be retrieved
        """
        ...


def normalize_klines(
    rows: list[dict],
    limit: Optional[int] = None,
) -> pd.DataFrame:
    """
    Build a uniform kline DataFrame from parsed candle rows.

    Args:
        rows: Dicts with timestamp (epoch milliseconds), open, high, low,
              close and optionally volume
        limit: Keep only the most recent `limit` candles

    Returns:
        DataFrame with float OHLCV columns and UTC timestamps, sorted
        ascending, duplicates (same timestamp) collapsed to the last one
    """
    if not rows:
        return pd.DataFrame(columns=KLINE_COLUMNS)

    df = pd.DataFrame(rows)
    if "volume" not in df.columns:
        df["volume"] = 0.0

    df["timestamp"] = pd.to_datetime(df["timestamp"].astype("int64"), unit="ms", utc=True)
    for column in ("open", "high", "low", "close", "volume"):
        df[column] = pd.to_numeric(df[column], errors="coerce").astype(float)

    df = df.dropna(subset=["open", "high", "low", "close"])
    df = (
        df.drop_duplicates(subset="timestamp", keep="last")
        .sort_values("timestamp")
        .reset_index(drop=True)
    )

    if limit is not None:
        df = df.tail(limit).reset_index(drop=True)

    return df[KLINE_COLUMNS]
