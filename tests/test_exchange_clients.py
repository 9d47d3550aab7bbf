"""
Comprehensive tests for market data clients and supporting modules.

Tests cover:
- Kline normalization (types, ordering, duplicates, limit)
- SymbolMapper (symbol and interval translation)
- BinanceClient (host fallback, retries, payload validation)
- KucoinClient (request window, payload mapping, API errors)
- FallbackKlineProvider and the provider factory
"""

import time

import pytest
from unittest.mock import Mock
import pandas as pd
import requests
from freezegun import freeze_time

from config.settings import Settings
from src.api.binance_client import BinanceClient
from src.api.exchange_factory import FallbackKlineProvider, create_kline_provider
from src.api.exchange_protocol import (
    KLINE_COLUMNS,
    KlineFetchError,
    is_retryable,
    normalize_klines,
)
from src.api.kucoin_client import KucoinClient
from src.api.symbol_mapper import (
    Exchange,
    interval_to_seconds,
    parse_symbol,
    to_exchange_symbol,
    to_kucoin_interval,
)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def no_retry_sleep(monkeypatch):
    """Skip tenacity backoff waits."""
    monkeypatch.setattr(time, "sleep", lambda seconds: None)


def _response(payload):
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def _http_error_response(status_code):
    response = Mock()
    response.status_code = status_code
    response.raise_for_status.side_effect = requests.exceptions.HTTPError(
        f"{status_code} Client Error", response=response
    )
    return response


def _binance_rows(count=3, start_ms=1704067200000, step_ms=900000):
    return [
        [start_ms + i * step_ms, str(100 + i), str(101 + i), str(99 + i), str(100.5 + i), "10.0",
         start_ms + (i + 1) * step_ms - 1, "0", 0, "0", "0", "0"]
        for i in range(count)
    ]


# ============================================================================
# Normalization Tests
# ============================================================================

def test_normalize_klines_types_and_order():
    """Rows are sorted ascending with float prices and UTC timestamps."""
    rows = [
        {"timestamp": 2000, "open": "2", "high": "3", "low": "1", "close": "2.5", "volume": "7"},
        {"timestamp": 1000, "open": "1", "high": "2", "low": "0.5", "close": "1.5", "volume": "5"},
    ]

    df = normalize_klines(rows)

    assert list(df.columns) == KLINE_COLUMNS
    assert df["close"].tolist() == [1.5, 2.5]
    assert df["open"].dtype == float
    assert str(df["timestamp"].dt.tz) == "UTC"
    assert df["timestamp"].is_monotonic_increasing


def test_normalize_klines_duplicates_keep_last():
    """Same timestamp collapses to the last row."""
    rows = [
        {"timestamp": 1000, "open": 1, "high": 2, "low": 0, "close": 1},
        {"timestamp": 1000, "open": 1, "high": 2, "low": 0, "close": 9},
    ]

    df = normalize_klines(rows)

    assert len(df) == 1
    assert df["close"].iloc[0] == 9.0
    assert df["volume"].iloc[0] == 0.0


def test_normalize_klines_limit_keeps_latest():
    """Limit trims to the most recent candles."""
    rows = [
        {"timestamp": i * 1000, "open": i, "high": i, "low": i, "close": i, "volume": 1}
        for i in range(10)
    ]

    df = normalize_klines(rows, limit=3)

    assert df["close"].tolist() == [7.0, 8.0, 9.0]


def test_normalize_klines_drops_unparseable_rows():
    """Rows with non-numeric prices are dropped."""
    rows = [
        {"timestamp": 1000, "open": "x", "high": 2, "low": 0, "close": 1},
        {"timestamp": 2000, "open": 1, "high": 2, "low": 0, "close": 1},
    ]
    assert len(normalize_klines(rows)) == 1


def test_normalize_klines_empty():
    """No rows gives an empty frame with the standard columns."""
    df = normalize_klines([])

    assert df.empty
    assert list(df.columns) == KLINE_COLUMNS


# ============================================================================
# Symbol Mapper Tests
# ============================================================================

@pytest.mark.parametrize(
    "symbol,expected",
    [
        ("BTCUSDT", ("BTC", "USDT")),
        ("ethusdt", ("ETH", "USDT")),
        ("SOL-USDC", ("SOL", "USDC")),
        ("ETHBTC", ("ETH", "BTC")),
    ],
)
def test_parse_symbol(symbol, expected):
    assert parse_symbol(symbol) == expected


def test_parse_symbol_unknown_quote():
    with pytest.raises(ValueError):
        parse_symbol("FOOBAR")


def test_to_exchange_symbol():
    """KuCoin uses BASE-QUOTE, Binance the concatenated form."""
    assert to_exchange_symbol("BTCUSDT", Exchange.KUCOIN) == "BTC-USDT"
    assert to_exchange_symbol("btc-usdt", Exchange.BINANCE) == "BTCUSDT"


def test_interval_mapping():
    assert to_kucoin_interval("15m") == "15min"
    assert to_kucoin_interval("1h") == "1hour"
    assert to_kucoin_interval("4h") == "4hour"
    assert to_kucoin_interval("1d") == "1day"
    assert interval_to_seconds("4h") == 14400

    with pytest.raises(ValueError):
        to_kucoin_interval("3d")
    with pytest.raises(ValueError):
        interval_to_seconds("3d")


# ============================================================================
# Binance Client Tests
# ============================================================================

def test_binance_get_klines_parses_rows():
    """Binance arrays map onto the shared columns."""
    session = Mock()
    session.get.return_value = _response(_binance_rows(3))
    client = BinanceClient(base_urls=["https://a.example"], session=session)

    df = client.get_klines("BTCUSDT", "15m", 3)

    assert len(df) == 3
    assert df["open"].tolist() == [100.0, 101.0, 102.0]
    assert df["high"].tolist() == [101.0, 102.0, 103.0]
    assert df["close"].tolist() == [100.5, 101.5, 102.5]

    url = session.get.call_args.args[0]
    params = session.get.call_args.kwargs["params"]
    assert url == "https://a.example/api/v3/klines"
    assert params == {"symbol": "BTCUSDT", "interval": "15m", "limit": 3}


def test_binance_limit_capped():
    """Requests never ask for more than 1000 candles."""
    session = Mock()
    session.get.return_value = _response(_binance_rows(2))
    client = BinanceClient(base_urls=["https://a.example"], session=session)

    client.get_klines("BTCUSDT", "4h", 5000)

    assert session.get.call_args.kwargs["params"]["limit"] == 1000


def test_binance_falls_back_to_next_host():
    """A host that keeps failing is abandoned for the next one."""
    session = Mock()
    session.get.side_effect = [requests.exceptions.ConnectionError("down")] * 3 + [
        _response(_binance_rows(2))
    ]
    client = BinanceClient(base_urls=["https://a.example", "https://b.example"], session=session)

    df = client.get_klines("ETHUSDT", "1h", 2)

    assert len(df) == 2
    assert session.get.call_count == 4
    assert session.get.call_args.args[0].startswith("https://b.example")


def test_binance_retries_transient_error_on_same_host():
    """One transient failure is retried on the same host."""
    session = Mock()
    session.get.side_effect = [
        requests.exceptions.Timeout("slow"),
        _response(_binance_rows(1)),
    ]
    client = BinanceClient(base_urls=["https://a.example", "https://b.example"], session=session)

    client.get_klines("ETHUSDT", "1h", 1)

    urls = [call.args[0] for call in session.get.call_args_list]
    assert urls == ["https://a.example/api/v3/klines"] * 2


def test_binance_all_hosts_fail():
    """Every host failing raises KlineFetchError."""
    session = Mock()
    session.get.side_effect = requests.exceptions.ConnectionError("down")
    client = BinanceClient(base_urls=["https://a.example", "https://b.example"], session=session)

    with pytest.raises(KlineFetchError):
        client.get_klines("BTCUSDT", "15m", 10)

    assert session.get.call_count == 6


def test_binance_unexpected_payload():
    """An error object instead of an array is rejected."""
    session = Mock()
    session.get.return_value = _response({"code": -1121, "msg": "Invalid symbol."})
    client = BinanceClient(base_urls=["https://a.example"], session=session)

    with pytest.raises(KlineFetchError):
        client.get_klines("BTCUSDT", "15m", 10)


def test_binance_default_hosts():
    """Default host list starts with the market data mirror."""
    client = BinanceClient(session=Mock())

    assert client.base_urls[0] == "https://data-api.binance.vision"
    assert len(client.base_urls) == 6


def test_binance_client_error_not_retried():
    """A 4xx answer moves straight to the next host without backoff."""
    session = Mock()
    session.get.return_value = _http_error_response(400)
    client = BinanceClient(base_urls=["https://a.example", "https://b.example"], session=session)

    with pytest.raises(KlineFetchError):
        client.get_klines("BTCUSDT", "15m", 10)

    assert session.get.call_count == 2


def test_binance_rate_limit_retried():
    """HTTP 429 is transient and retried on the same host."""
    session = Mock()
    session.get.side_effect = [_http_error_response(429), _response(_binance_rows(1))]
    client = BinanceClient(base_urls=["https://a.example", "https://b.example"], session=session)

    client.get_klines("BTCUSDT", "15m", 1)

    urls = [call.args[0] for call in session.get.call_args_list]
    assert urls == ["https://a.example/api/v3/klines"] * 2


def test_binance_unmappable_symbol():
    """A symbol with no known quote asset fails before any request."""
    session = Mock()
    client = BinanceClient(base_urls=["https://a.example"], session=session)

    with pytest.raises(KlineFetchError):
        client.get_klines("FOOBAR", "15m", 10)

    session.get.assert_not_called()


@pytest.mark.parametrize(
    "exc,expected",
    [
        (requests.exceptions.ConnectionError("down"), True),
        (requests.exceptions.Timeout("slow"), True),
        (requests.exceptions.HTTPError("500", response=Mock(status_code=500)), True),
        (requests.exceptions.HTTPError("429", response=Mock(status_code=429)), True),
        (requests.exceptions.HTTPError("400", response=Mock(status_code=400)), False),
        (requests.exceptions.HTTPError("451", response=Mock(status_code=451)), False),
        (requests.exceptions.HTTPError("no response"), True),
    ],
)
def test_is_retryable(exc, expected):
    assert is_retryable(exc) is expected


# ============================================================================
# KuCoin Client Tests
# ============================================================================

@freeze_time("2024-01-01 00:00:00")
def test_kucoin_request_window_and_mapping():
    """Symbol, interval and time window are translated for KuCoin."""
    session = Mock()
    session.get.return_value = _response({"code": "200000", "data": []})
    client = KucoinClient(base_url="https://k.example", session=session)

    client.get_klines("BTCUSDT", "15m", 10)

    url = session.get.call_args.args[0]
    params = session.get.call_args.kwargs["params"]
    assert url == "https://k.example/api/v1/market/candles"
    assert params["symbol"] == "BTC-USDT"
    assert params["type"] == "15min"
    assert params["endAt"] == 1704067200
    assert params["startAt"] == 1704067200 - 13500


def test_kucoin_rows_reordered_and_mapped():
    """Newest-first [t, open, close, high, low, vol] rows come back ascending."""
    data = [
        ["1704068100", "101", "102", "103", "100", "5", "500"],
        ["1704067200", "100", "101", "102", "99", "4", "400"],
    ]
    session = Mock()
    session.get.return_value = _response({"code": "200000", "data": data})
    client = KucoinClient(session=session)

    df = client.get_klines("BTCUSDT", "15m", 10)

    assert df["open"].tolist() == [100.0, 101.0]
    assert df["close"].tolist() == [101.0, 102.0]
    assert df["high"].tolist() == [102.0, 103.0]
    assert df["low"].tolist() == [99.0, 100.0]
    assert df["timestamp"].iloc[0] == pd.Timestamp("2024-01-01 00:00:00", tz="UTC")


def test_kucoin_error_code():
    """A non-success code raises KlineFetchError."""
    session = Mock()
    session.get.return_value = _response({"code": "400100", "msg": "Invalid symbol"})
    client = KucoinClient(session=session)

    with pytest.raises(KlineFetchError, match="Invalid symbol"):
        client.get_klines("BTCUSDT", "15m", 10)


def test_kucoin_transport_failure():
    """Exhausted retries surface as KlineFetchError."""
    session = Mock()
    session.get.side_effect = requests.exceptions.ConnectionError("down")
    client = KucoinClient(session=session)

    with pytest.raises(KlineFetchError):
        client.get_klines("BTCUSDT", "15m", 10)

    assert session.get.call_count == 3


def test_kucoin_unsupported_interval():
    """Unknown intervals fail before any request."""
    session = Mock()
    client = KucoinClient(session=session)

    with pytest.raises(KlineFetchError):
        client.get_klines("BTCUSDT", "3d", 10)

    session.get.assert_not_called()


# ============================================================================
# Fallback Provider / Factory Tests
# ============================================================================

def test_fallback_first_success_wins():
    """Later providers are not called once one succeeds."""
    frame = pd.DataFrame({"close": [1.0]})
    first = Mock()
    first.get_klines.return_value = frame
    second = Mock()

    result = FallbackKlineProvider([first, second]).get_klines("BTCUSDT", "4h", 500)

    assert result is frame
    second.get_klines.assert_not_called()


def test_fallback_uses_next_provider_on_failure():
    """A KlineFetchError moves on to the next provider."""
    frame = pd.DataFrame({"close": [1.0]})
    first = Mock()
    first.get_klines.side_effect = KlineFetchError("binance down")
    second = Mock()
    second.get_klines.return_value = frame

    result = FallbackKlineProvider([first, second]).get_klines("BTCUSDT", "4h", 500)

    assert result is frame
    second.get_klines.assert_called_once_with("BTCUSDT", "4h", 500)


def test_fallback_all_fail():
    """Every provider failing raises KlineFetchError."""
    first = Mock()
    first.get_klines.side_effect = KlineFetchError("binance down")
    second = Mock()
    second.get_klines.side_effect = KlineFetchError("kucoin down")

    with pytest.raises(KlineFetchError, match="kucoin down"):
        FallbackKlineProvider([first, second]).get_klines("BTCUSDT", "4h", 500)


def test_fallback_reaches_next_provider_for_unmappable_symbol():
    """A Binance symbol mapping failure still falls through to the next provider."""
    frame = pd.DataFrame({"close": [1.0]})
    second = Mock()
    second.get_klines.return_value = frame
    binance = BinanceClient(base_urls=["https://a.example"], session=Mock())

    result = FallbackKlineProvider([binance, second]).get_klines("FOOBAR", "4h", 500)

    assert result is frame
    second.get_klines.assert_called_once_with("FOOBAR", "4h", 500)


def test_fallback_requires_providers():
    with pytest.raises(ValueError):
        FallbackKlineProvider([])


def test_factory_with_kucoin_fallback():
    """Default settings chain Binance then KuCoin."""
    provider = create_kline_provider(Settings(_env_file=None))

    assert isinstance(provider, FallbackKlineProvider)
    assert isinstance(provider.providers[0], BinanceClient)
    assert isinstance(provider.providers[1], KucoinClient)


def test_factory_binance_only():
    """Disabling the fallback gives a bare Binance client."""
    settings = Settings(_env_file=None, kucoin_fallback_enabled=False, request_timeout_seconds=5)

    provider = create_kline_provider(settings)

    assert isinstance(provider, BinanceClient)
    assert provider.timeout == 5
