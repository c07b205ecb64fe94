"""Request/response feeds shown next to the price chart."""

from market_pulse.feeds.base import CachedFeed, UpstreamError, UpstreamRateLimited
from market_pulse.feeds.funding import FundingRate, FundingRateService
from market_pulse.feeds.macro import (
    M2_SERIES,
    MMF_SERIES,
    Indicator,
    MacroIndicatorService,
    MacroSeriesService,
    SeriesPoint,
)
from market_pulse.feeds.market import AssetSnapshot, MarketDataService
from market_pulse.feeds.onchain import DailyVolume, EthereumVolumeService
from market_pulse.feeds.social import Post, SocialFeedService

__all__ = [
    "AssetSnapshot",
    "CachedFeed",
    "DailyVolume",
    "EthereumVolumeService",
    "FundingRate",
    "FundingRateService",
    "Indicator",
    "M2_SERIES",
    "MMF_SERIES",
    "MacroIndicatorService",
    "MacroSeriesService",
    "MarketDataService",
    "Post",
    "SeriesPoint",
    "SocialFeedService",
    "UpstreamError",
    "UpstreamRateLimited",
]
