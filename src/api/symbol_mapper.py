"""
Symbol and interval mapper for translating between exchange formats.

Different exchanges use different symbol formats:
- Binance: BTCUSDT, ETHUSDT (concatenated, our canonical form)
- KuCoin: BTC-USDT, ETH-USDT

And different candle interval names:
- Binance: 15m, 1h, 4h, 1d
- KuCoin: 15min, 1hour, 4hour, 1day

This module provides the translation used by the fallback data source.
"""

from enum import Enum


class Exchange(Enum):
    """Supported market data sources."""

    BINANCE = "binance"
    KUCOIN = "kucoin"


# Quote currencies recognized when splitting a concatenated symbol,
# longest first so USDT wins over USD
QUOTE_CURRENCIES = ("FDUSD", "USDT", "USDC", "BUSD", "TUSD", "USD", "BTC", "ETH", "EUR", "BNB")

INTERVAL_SECONDS = {
    "1m": 60,
    "3m": 180,
    "5m": 300,
    "15m": 900,
    "30m": 1800,
    "1h": 3600,
    "2h": 7200,
    "4h": 14400,
    "6h": 21600,
    "8h": 28800,
    "12h": 43200,
    "1d": 86400,
    "1w": 604800,
}

KUCOIN_INTERVAL_MAP = {
    "1m": "1min",
    "3m": "3min",
    "5m": "5min",
    "15m": "15min",
    "30m": "30min",
    "1h": "1hour",
    "2h": "2hour",
    "4h": "4hour",
    "6h": "6hour",
    "8h": "8hour",
    "12h": "12hour",
    "1d": "1day",
    "1w": "1week",
}


def parse_symbol(symbol: str) -> tuple[str, str]:
    """
    Split a concatenated symbol into base and quote currencies.

    Args:
        symbol: Symbol like BTCUSDT (dash/slash separated forms also accepted)

    Returns:
        Tuple of (base, quote)

    Raises:
        ValueError: If no known quote currency matches
    """
    symbol = symbol.upper()

    for sep in ["-", "/", "_"]:
        if sep in symbol:
            parts = symbol.split(sep)
            if len(parts) == 2 and all(parts):
                return parts[0], parts[1]

    for quote in QUOTE_CURRENCIES:
        if symbol.endswith(quote) and len(symbol) > len(quote):
            return symbol[: -len(quote)], quote

    raise ValueError(f"Cannot parse trading pair: {symbol}")


def to_exchange_symbol(symbol: str, exchange: Exchange) -> str:
    """
    Convert a canonical symbol (BTCUSDT) to exchange-specific format.

    Args:
        symbol: Canonical symbol
        exchange: Target exchange

    Returns:
        Exchange-specific symbol
    """
    base, quote = parse_symbol(symbol)

    if exchange == Exchange.KUCOIN:
        return f"{base}-{quote}"

    return f"{base}{quote}"


def to_kucoin_interval(interval: str) -> str:
    """
    Convert a Binance-style interval to KuCoin's candle type.

    Raises:
        ValueError: If the interval has no KuCoin equivalent
    """
    try:
        return KUCOIN_INTERVAL_MAP[interval]
    except KeyError:
        raise ValueError(f"Unsupported interval for KuCoin: {interval}") from None


def interval_to_seconds(interval: str) -> int:
    """
    Length of one candle in seconds.

    Raises:
        ValueError: If the interval is unknown
    """
    try:
        return INTERVAL_SECONDS[interval]
    except KeyError:
        raise ValueError(f"Unknown interval: {interval}") from None
