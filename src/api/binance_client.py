"""
Binance public market data client.

Only the unauthenticated kline endpoint is used. Binance serves the same data
from several hosts (the market-data-only mirror plus the api/api1-4 cluster),
which are tried in order: each host gets a few attempts with exponential
backoff before the client moves on to the next one.
"""

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
from src.api.symbol_mapper import Exchange, to_exchange_symbol

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URLS = [
    "https://data-api.binance.vision",
    "https://api.binance.com",
    "https://api1.binance.com",
    "https://api2.binance.com",
    "https://api3.binance.com",
    "https://api4.binance.com",
]

MAX_KLINE_LIMIT = 1000


def log_retry(retry_state) -> None:
    """Log retry attempts for debugging."""
    logger.warning(
        "binance_api_retry",
        attempt=retry_state.attempt_number,
        wait=f"{retry_state.next_action.sleep:.1f}s",
        error=str(retry_state.outcome.exception()) if retry_state.outcome else "unknown",
    )


class BinanceClient:
    """
    Binance kline client implementing the KlineProvider protocol.

    Features:
    - Ordered host fallback across Binance mirrors
    - Automatic retry with exponential backoff per host
    - Normalization into the shared kline DataFrame format
    """

    RETRY_EXCEPTIONS = (
        ConnectionError,
        TimeoutError,
        requests.exceptions.RequestException,
    )

    def __init__(
        self,
        base_urls: Optional[list[str]] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize Binance client.

        Args:
            base_urls: Hosts tried in order (default: DEFAULT_BASE_URLS)
            timeout: Per-request timeout in seconds
            session: Optional requests session (injected in tests)
        """
        self.base_urls = [url.rstrip("/") for url in (base_urls or DEFAULT_BASE_URLS)]
        self.timeout = timeout
        self.session = session or requests.Session()

        logger.debug("binance_client_initialized", hosts=len(self.base_urls))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(RETRY_EXCEPTIONS) & retry_if_exception(is_retryable),
        before_sleep=log_retry,
        reraise=True,
    )
    def _request_klines(self, base_url: str, params: dict) -> list:
        """
        Fetch raw klines from a single host.

        Args:
            base_url: Binance host
            params: Query parameters

        Returns:
            Raw kline arrays as returned by Binance
        """
        response = self.session.get(
            f"{base_url}/api/v3/klines",
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
            symbol: Instrument (e.g., BTCUSDT)
            interval: Candle size (15m, 1h, 4h, ...)
            limit: Number of candles to fetch (capped at 1000)

        Returns:
            DataFrame with columns: timestamp, open, high, low, close, volume

        Raises:
            KlineFetchError: If the symbol cannot be mapped or every host fails
        """
        try:
            binance_symbol = to_exchange_symbol(symbol, Exchange.BINANCE)
        except ValueError as e:
            raise KlineFetchError(str(e)) from e

        params = {
            "symbol": binance_symbol,
            "interval": interval,
            "limit": min(limit, MAX_KLINE_LIMIT),
        }

        last_error: Optional[Exception] = None
        for base_url in self.base_urls:
            try:
                raw = self._request_klines(base_url, params)
            except self.RETRY_EXCEPTIONS as e:
                last_error = e
                logger.warning(
                    "binance_host_failed",
                    host=base_url,
                    symbol=symbol,
                    interval=interval,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            if not isinstance(raw, list):
                raise KlineFetchError(f"Unexpected Binance kline payload for {symbol} {interval}")

            # Binance format: [open_time, open, high, low, close, volume, close_time, ...]
            rows = [
                {
                    "timestamp": int(candle[0]),
                    "open": candle[1],
                    "high": candle[2],
                    "low": candle[3],
                    "close": candle[4],
                    "volume": candle[5],
                }
                for candle in raw
            ]

            logger.debug(
                "binance_klines_fetched",
                host=base_url,
                symbol=symbol,
                interval=interval,
                count=len(rows),
            )
            return normalize_klines(rows, limit=limit)

        raise KlineFetchError(
            f"All Binance hosts failed for {symbol} {interval}: {last_error}"
        ) from last_error
