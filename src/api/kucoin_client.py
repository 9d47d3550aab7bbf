"""
KuCoin public market data client.

Used as the fallback source when every Binance host is unreachable. KuCoin
names symbols and intervals differently (BTC-USDT, 15min) and returns candles
newest first as [time, open, close, high, low, volume, turnover], with the
time in seconds; everything is translated back to the shared format here.
"""

import time
from typing import Optional

import pandas as pd
import requests
import structlog
from tenacity import (
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.api.exchange_protocol import KlineFetchError, is_retryable, normalize_klines
from src.api.symbol_mapper import (
    Exchange,
    interval_to_seconds,
    to_exchange_symbol,
    to_kucoin_interval,
)

logger = structlog.get_logger(__name__)

BASE_URL = "https://api.kucoin.com"
SUCCESS_CODE = "200000"

# KuCoin has no limit parameter; request a wider time window than needed
# and keep the most recent candles
_WINDOW_BUFFER = 1.5


def log_retry(retry_state) -> None:
    """Log retry attempts for debugging."""
    logger.warning(
        "kucoin_api_retry",
        attempt=retry_state.attempt_number,
        wait=f"{retry_state.next_action.sleep:.1f}s",
        error=str(retry_state.outcome.exception()) if retry_state.outcome else "unknown",
    )


class KucoinClient:
    """
    KuCoin kline client implementing the KlineProvider protocol.
    """

    RETRY_EXCEPTIONS = (
        ConnectionError,
        TimeoutError,
        requests.exceptions.RequestException,
    )

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize KuCoin client.

        Args:
            base_url: KuCoin host
            timeout: Per-request timeout in seconds
            session: Optional requests session (injected in tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(RETRY_EXCEPTIONS) & retry_if_exception(is_retryable),
        before_sleep=log_retry,
        reraise=True,
    )
    def _public_request(self, path: str, params: dict) -> dict:
        """
        Make a public (unauthenticated) request.

        Args:
            path: API path
            params: Query parameters

        Returns:
            Decoded JSON body
        """
        response = self.session.get(
            f"{self.base_url}{path}",
            params=params,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def get_klines(
        self,
        symbol: str,
        interval: str,
        limit: int,
    ) -> pd.DataFrame:
        """
        Get historical OHLCV candle data.

        Args:
            symbol: Instrument in canonical form (e.g., BTCUSDT)
            interval: Binance-style candle size (15m, 1h, 4h, ...)
            limit: Number of candles to keep

        Returns:
            DataFrame with columns: timestamp, open, high, low, close, volume

        Raises:
            KlineFetchError: If the request fails or KuCoin reports an error
        """
        try:
            kucoin_symbol = to_exchange_symbol(symbol, Exchange.KUCOIN)
            candle_type = to_kucoin_interval(interval)
            seconds = interval_to_seconds(interval)
        except ValueError as e:
            raise KlineFetchError(str(e)) from e

        end = int(time.time())
        start = end - int(limit * seconds * _WINDOW_BUFFER)

        try:
            body = self._public_request(
                "/api/v1/market/candles",
                {
                    "type": candle_type,
                    "symbol": kucoin_symbol,
                    "startAt": start,
                    "endAt": end,
                },
            )
        except self.RETRY_EXCEPTIONS as e:
            raise KlineFetchError(f"KuCoin request failed for {symbol} {interval}: {e}") from e

        if body.get("code") != SUCCESS_CODE:
            message = body.get("msg") or "Failed to fetch data from KuCoin"
            logger.error("kucoin_api_error", symbol=symbol, interval=interval, error=message)
            raise KlineFetchError(message)

        rows = [
            {
                "timestamp": int(candle[0]) * 1000,
                "open": candle[1],
                "close": candle[2],
                "high": candle[3],
                "low": candle[4],
                "volume": candle[5] if len(candle) > 5 else 0.0,
            }
            for candle in body.get("data") or []
            if candle and len(candle) >= 5
        ]

        logger.debug("kucoin_klines_fetched", symbol=symbol, interval=interval, count=len(rows))
        return normalize_klines(rows, limit=limit)
