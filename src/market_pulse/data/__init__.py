"""Data access layer."""

from market_pulse.data.binance_client import BinanceRESTClient
from market_pulse.data.cache import CacheEntry, TTLCache, make_key
from market_pulse.data.client import CandleSource, ChartSurface
from market_pulse.data.hyperliquid_client import HyperliquidRESTClient
from market_pulse.data.memory import CandlePoint, CandleSeries, TopOfBookTick, candles_from_records
from market_pulse.data.ratelimit import RateLimiter, RequestThrottled
from market_pulse.data.stream import StreamSession, StreamSessionManager

__all__ = [
    "BinanceRESTClient",
    "CacheEntry",
    "CandlePoint",
    "CandleSeries",
    "CandleSource",
    "ChartSurface",
    "HyperliquidRESTClient",
    "RateLimiter",
    "RequestThrottled",
    "StreamSession",
    "StreamSessionManager",
    "TTLCache",
    "TopOfBookTick",
    "candles_from_records",
    "make_key",
]
