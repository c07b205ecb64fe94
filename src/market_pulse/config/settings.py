"""Configuration management for the market dashboard."""
from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


RangeToken = Literal["1D", "7D", "1M", "3M", "1Y"]


class HyperliquidSettings(BaseModel):
    """Hyperliquid REST/WebSocket connection parameters."""

    info_url: str = Field("https://api.hyperliquid.xyz/info")
    ws_url: str = Field("wss://api.hyperliquid.xyz/ws")
    book_channel: str = Field("l2Book", description="Subscription type used for top-of-book ticks")
    request_timeout: float = Field(10.0, gt=0.0)


class BinanceSettings(BaseModel):
    """Binance REST parameters; keys are only needed for signed endpoints."""

    api_key: str | None = Field(None)
    api_secret: str | None = Field(None)
    base_url: str | None = Field(None, description="Optional override for the spot REST endpoint")
    futures_url: str | None = Field(None, description="Optional override for the USD-M futures REST endpoint")
    request_timeout: float = Field(10.0, gt=0.0)


class ChartSettings(BaseModel):
    """Price chart defaults."""

    symbol: str = Field("BTC")
    range: RangeToken = Field("1D")
    fetch_timeout_seconds: float = Field(8.0, gt=0.0, description="Upper bound for a historical candle request")


class CacheSettings(BaseModel):
    """In-memory cache lifetimes and bounds."""

    history_ttl_seconds: float = Field(300.0, gt=0.0)
    feed_ttl_seconds: float = Field(900.0, gt=0.0)
    series_ttl_seconds: float = Field(86400.0, gt=0.0, description="Lifetime of monthly and quarterly FRED histories")
    capacity: int = Field(256, ge=1)


class RateLimitSettings(BaseModel):
    """Per-key request throttling."""

    min_interval_seconds: float = Field(10.0, ge=0.0)


class FredSettings(BaseModel):
    """FRED macro series API."""

    api_key: str | None = Field(None)
    base_url: str = Field("https://api.stlouisfed.org/fred/series/observations")


class EtherscanSettings(BaseModel):
    """Etherscan stats API used for Ethereum transaction volume."""

    api_key: str | None = Field(None)
    base_url: str = Field("https://api.etherscan.io/api")


class TwitterSettings(BaseModel):
    """Twitter v2 API used for the news feed."""

    bearer_token: str | None = Field(None)
    base_url: str = Field("https://api.twitter.com/2")
    username: str = Field("TreeNewsFeed")
    limit: int = Field(10, ge=5, le=100)


class AppSettings(BaseSettings):
    """Application-wide configuration composed from individual domains."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_nested_delimiter="__",
        env_file=".env",
    )

    hyperliquid: HyperliquidSettings = HyperliquidSettings()
    binance: BinanceSettings = BinanceSettings()
    chart: ChartSettings = ChartSettings()
    cache: CacheSettings = CacheSettings()
    rate_limit: RateLimitSettings = RateLimitSettings()
    fred: FredSettings = FredSettings()
    twitter: TwitterSettings = TwitterSettings()
    etherscan: EtherscanSettings = EtherscanSettings()

    def history_request_timeout(self, source: Literal["hyperliquid", "binance"]) -> float:
        """HTTP timeout for a chart history client, capped at the chart fetch timeout."""

        configured = self.binance.request_timeout if source == "binance" else self.hyperliquid.request_timeout
        return min(configured, self.chart.fetch_timeout_seconds)


def load_settings(path: Optional[Path] = None) -> AppSettings:
    """Load settings from a TOML file, falling back to environment variables."""

    if path is None:
        path = Path("config/settings.toml")

    if path.exists():
        raw_data = tomllib.loads(path.read_text())
        return AppSettings.model_validate(raw_data)

    try:
        return AppSettings()
    except ValidationError as exc:
        raise RuntimeError(
            f"Unable to load configuration. Provide {path} or the relevant environment variables."
        ) from exc
