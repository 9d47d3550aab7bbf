"""
Kline provider factory.

Builds the market data source from settings: Binance first, falling back to
KuCoin when every Binance host fails (unless the fallback is disabled).
"""

from typing import Sequence

import pandas as pd
import structlog

from config.settings import Settings, get_settings
from src.api.binance_client import BinanceClient
from src.api.exchange_protocol import KlineFetchError, KlineProvider
from src.api.kucoin_client import KucoinClient

logger = structlog.get_logger(__name__)


class FallbackKlineProvider:
    """
    Tries each provider in order; the first successful response wins.
    """

    def __init__(self, providers: Sequence[KlineProvider]):
        if not providers:
            raise ValueError("FallbackKlineProvider needs at least one provider")
        self.providers = list(providers)

    def get_klines(
        self,
        symbol: str,
        interval: str,
        limit: int,
    ) -> pd.DataFrame:
        """
        Get candles from the first provider that succeeds.

        Raises:
            KlineFetchError: If every provider fails
        """
        last_error: KlineFetchError | None = None
        for provider in self.providers:
            try:
                return provider.get_klines(symbol, interval, limit)
            except KlineFetchError as e:
                last_error = e
                logger.warning(
                    "kline_provider_failed",
                    provider=type(provider).__name__,
                    symbol=symbol,
                    interval=interval,
                    error=str(e),
                )

        raise KlineFetchError(
            f"All kline providers failed for {symbol} {interval}: {last_error}"
        ) from last_error


def create_kline_provider(settings: Settings | None = None) -> KlineProvider:
    """
    Create the kline provider based on settings.

    Args:
        settings: Optional settings instance. If not provided, uses global settings.

    Returns:
        Provider implementing the KlineProvider protocol
    """
    if settings is None:
        settings = get_settings()

    binance = BinanceClient(
        base_urls=settings.binance_base_urls,
        timeout=settings.request_timeout_seconds,
    )

    if not settings.kucoin_fallback_enabled:
        logger.info("creating_kline_provider", sources=["binance"])
        return binance

    kucoin = KucoinClient(
        base_url=settings.kucoin_base_url,
        timeout=settings.request_timeout_seconds,
    )
    logger.info("creating_kline_provider", sources=["binance", "kucoin"])
    return FallbackKlineProvider([binance, kucoin])
