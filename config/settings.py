"""
Configuration settings with Pydantic validation.
All settings are loaded from environment variables (or a .env file).
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_INTERVAL_PATTERN = "^(1m|3m|5m|15m|30m|1h|2h|4h|6h|8h|12h|1d|1w)$"


class Settings(BaseSettings):
    """Main application settings with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    log_file: Optional[Path] = Field(
        default=None,
        description="Optional log file path"
    )
    log_json: bool = Field(
        default=False,
        description="Render logs as JSON instead of the colored console format"
    )

    # Instruments
    default_symbol: str = Field(
        default="BTCUSDT",
        description="Symbol evaluated when none is given on the command line"
    )
    symbols: list[str] = Field(
        default=["BTCUSDT", "ETHUSDT", "SOLUSDT", "BNBUSDT", "ADAUSDT"],
        min_length=1,
        description="Symbols evaluated in batch mode"
    )
    default_strategy: str = Field(
        default="trend_regime",
        pattern="^(trend_regime|structural_reversal)$",
        description="Strategy used when none is given on the command line"
    )

    # Market Data
    binance_base_urls: list[str] = Field(
        default=[
            "https://data-api.binance.vision",
            "https://api.binance.com",
            "https://api1.binance.com",
            "https://api2.binance.com",
            "https://api3.binance.com",
            "https://api4.binance.com",
        ],
        min_length=1,
        description="Binance hosts tried in order for kline requests"
    )
    kucoin_base_url: str = Field(
        default="https://api.kucoin.com",
        description="KuCoin host used when every Binance host fails"
    )
    kucoin_fallback_enabled: bool = Field(
        default=True,
        description="Fall back to KuCoin candles when Binance is unreachable"
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=120.0,
        description="HTTP timeout for a single kline request"
    )

    # Trend Regime Strategy - timeframes
    regime_timeframe: str = Field(default="4h", pattern=_INTERVAL_PATTERN)
    entry_timeframe: str = Field(default="15m", pattern=_INTERVAL_PATTERN)
    trend_candle_limit: int = Field(default=1000, ge=200, le=1000)
    regime_min_candles: int = Field(default=200, ge=50, le=1000)
    entry_min_candles: int = Field(default=50, ge=20, le=1000)

    # Trend Regime Strategy - regime classification
    regime_ema_period: int = Field(default=200, ge=20, le=500)
    adx_period: int = Field(default=14, ge=2, le=50)
    adx_strong_trend: float = Field(
        default=25.0,
        ge=0.0,
        le=100.0,
        description="ADX above this (with a steep EMA slope) is a strong trend"
    )
    ema_slope_strong_trend: float = Field(
        default=0.05,
        ge=0.0,
        le=5.0,
        description="Minimum |EMA slope| in percent per bar for a strong trend"
    )
    adx_weak_trend: float = Field(default=20.0, ge=0.0, le=100.0)
    adx_strong_range: float = Field(default=18.0, ge=0.0, le=100.0)

    # Trend Regime Strategy - entries
    entry_ema_period: int = Field(default=20, ge=2, le=200)
    atr_period: int = Field(default=14, ge=2, le=50)
    range_lookback: int = Field(default=20, ge=5, le=200)
    strong_trend_rr: float = Field(default=2.0, gt=0.0, le=10.0)
    weak_trend_rr: float = Field(default=1.3, gt=0.0, le=10.0)
    range_rr: float = Field(default=1.5, gt=0.0, le=10.0)
    reference_symbol: str = Field(
        default="BTCUSDT",
        description="Instrument that uses symmetric +/-0.5 ATR range buffers"
    )

    # Structural Reversal Strategy
    structure_timeframe: str = Field(default="4h", pattern=_INTERVAL_PATTERN)
    structure_fallback_timeframe: str = Field(default="1h", pattern=_INTERVAL_PATTERN)
    structure_entry_timeframe: str = Field(default="15m", pattern=_INTERVAL_PATTERN)
    structure_candle_limit: int = Field(default=500, ge=100, le=1000)
    structure_entry_candle_limit: int = Field(default=200, ge=50, le=1000)
    swing_window: int = Field(default=3, ge=1, le=20)
    rsi_period: int = Field(default=14, ge=2, le=50)

    @field_validator("symbols", mode="after")
    @classmethod
    def normalize_symbols(cls, v: list[str]) -> list[str]:
        """Upper-case symbols and drop blanks."""
        symbols = [s.strip().upper() for s in v if s.strip()]
        if not symbols:
            raise ValueError("symbols must contain at least one symbol")
        return symbols

    @field_validator("default_symbol", "reference_symbol", mode="after")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("binance_base_urls", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: list[str]) -> list[str]:
        return [url.rstrip("/") for url in v]

    @model_validator(mode="after")
    def validate_adx_thresholds(self) -> "Settings":
        """Regime thresholds must be ordered range < weak trend <= strong trend."""
        if not self.adx_strong_range <= self.adx_weak_trend <= self.adx_strong_trend:
            raise ValueError(
                "ADX thresholds must satisfy "
                "adx_strong_range <= adx_weak_trend <= adx_strong_trend"
            )
        return self

    @model_validator(mode="after")
    def validate_candle_limits(self) -> "Settings":
        """Fetch limits must cover the minimum history each strategy needs."""
        if self.trend_candle_limit < self.regime_min_candles:
            raise ValueError("trend_candle_limit must be >= regime_min_candles")
        if self.trend_candle_limit < self.entry_min_candles:
            raise ValueError("trend_candle_limit must be >= entry_min_candles")
        if self.regime_min_candles < self.regime_ema_period:
            raise ValueError("regime_min_candles must be >= regime_ema_period")
        return self


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached instance so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
