"""Perpetual funding rates across Binance and Hyperliquid."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Protocol, Sequence

from loguru import logger

from market_pulse.feeds.base import CachedFeed, UpstreamError, upstream_retry
from market_pulse.utils import now_ms

DEFAULT_SYMBOLS = ("BTC", "ETH", "HYPE")
FUNDING_PERIODS_PER_YEAR = 24 * 365
HOUR_MS = 60 * 60 * 1000


class PremiumIndexSource(Protocol):
    def premium_index(self) -> List[Dict[str, Any]]: ...

    def market_symbol(self, symbol: str) -> str: ...


class AssetContextSource(Protocol):
    def meta_and_asset_ctxs(self) -> List[Any]: ...


@dataclass(frozen=True, slots=True)
class FundingRate:
    symbol: str
    exchange: str
    apr_percent: float
    next_funding_time_ms: int


def annualise(rate: float) -> float:
    """Convert an hourly funding rate into an APR percentage."""

    return rate * FUNDING_PERIODS_PER_YEAR * 100


def next_full_hour_ms(now: int) -> int:
    return (now // HOUR_MS + 1) * HOUR_MS


class FundingRateService:
    """Collect annualised funding for a handful of perps from both venues.

    A venue that fails is logged and left out; the other venue still reports. When both
    fail an ``UpstreamError`` is raised, so an empty answer never lands in the cache.
    """

    def __init__(
        self,
        *,
        binance: PremiumIndexSource,
        hyperliquid: AssetContextSource,
        feed: CachedFeed[List[FundingRate]],
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._binance = binance
        self._hyperliquid = hyperliquid
        self._feed = feed
        self._clock = clock

    def fetch(self, symbols: Sequence[str] = DEFAULT_SYMBOLS) -> List[FundingRate]:
        wanted = tuple(symbol.upper() for symbol in symbols)
        return self._feed.get_or_fetch(
            "funding",
            "+".join(wanted),
            len(wanted),
            lambda: self._collect(wanted),
        )

    def _collect(self, symbols: Sequence[str]) -> List[FundingRate]:
        rates: List[FundingRate] = []
        failures: List[Exception] = []
        try:
            rates.extend(self._binance_rates(symbols))
        except Exception as error:
            logger.warning("Binance funding rates unavailable: {error}", error=error)
            failures.append(error)
        try:
            rates.extend(self._hyperliquid_rates(symbols))
        except Exception as error:
            logger.warning("Hyperliquid funding rates unavailable: {error}", error=error)
            failures.append(error)
        if len(failures) == 2:
            raise UpstreamError("funding", None, f"no venue answered: {failures[-1]}") from failures[-1]
        return rates

    @upstream_retry
    def _premium_index(self) -> List[Dict[str, Any]]:
        return self._binance.premium_index()

    @upstream_retry
    def _asset_contexts(self) -> List[Any]:
        return self._hyperliquid.meta_and_asset_ctxs()

    def _binance_rates(self, symbols: Sequence[str]) -> List[FundingRate]:
        by_market = {row.get("symbol"): row for row in self._premium_index()}
        rates: List[FundingRate] = []
        for symbol in symbols:
            row = by_market.get(self._binance.market_symbol(symbol))
            if row is None:
                continue
            try:
                rate = float(row["lastFundingRate"])
                next_time = int(row["nextFundingTime"])
            except (KeyError, TypeError, ValueError):
                continue
            rates.append(FundingRate(symbol, "Binance", annualise(rate), next_time))
        return rates

    def _hyperliquid_rates(self, symbols: Sequence[str]) -> List[FundingRate]:
        payload = self._asset_contexts()
        if len(payload) < 2:
            return []
        meta, contexts = payload[0], payload[1]
        universe = meta.get("universe", []) if isinstance(meta, dict) else []

        next_time = next_full_hour_ms(self._clock())
        rates: List[FundingRate] = []
        for asset, context in zip(universe, contexts):
            name = str(asset.get("name", "")).upper()
            if name not in symbols or context.get("funding") is None:
                continue
            try:
                rate = float(context["funding"])
            except (TypeError, ValueError):
                continue
            rates.append(FundingRate(name, "Hyperliquid", annualise(rate), next_time))
        rates.sort(key=lambda item: symbols.index(item.symbol))
        return rates


__all__ = ["DEFAULT_SYMBOLS", "FundingRate", "FundingRateService", "annualise", "next_full_hour_ms"]
