"""Price, 24h notional volume and funding for the watched Hyperliquid perps."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Protocol, Sequence

from loguru import logger

from market_pulse.feeds.base import CachedFeed, UpstreamError, upstream_retry

MARKET_SYMBOLS = ("BTC", "ETH", "HYPE", "SOL", "FARTCOIN", "XRP", "SUI", "kPEPE", "SPX", "AAVE")


class AssetContextSource(Protocol):
    def meta_and_asset_ctxs(self) -> List[Any]: ...


@dataclass(frozen=True, slots=True)
class AssetSnapshot:
    name: str
    price: float
    volume: float
    funding: float | None


def _number(context: Mapping[str, Any], field: str) -> float | None:
    raw = context.get(field)
    if raw in (None, ""):
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


class MarketDataService:
    """One snapshot per watched symbol, in watch-list order.

    Names are matched case-sensitively (``kPEPE``). A symbol missing from the exchange
    universe is still listed, with zero price and volume and no funding.
    """

    def __init__(
        self,
        *,
        hyperliquid: AssetContextSource,
        feed: CachedFeed[List[AssetSnapshot]],
        symbols: Sequence[str] = MARKET_SYMBOLS,
    ) -> None:
        self._hyperliquid = hyperliquid
        self._feed = feed
        self._symbols = tuple(symbols)

    @property
    def symbols(self) -> tuple[str, ...]:
        return self._symbols

    def fetch(self) -> List[AssetSnapshot]:
        return self._feed.get_or_fetch("markets", "hyperliquid", len(self._symbols), self._collect)

    @upstream_retry
    def _asset_contexts(self) -> List[Any]:
        return self._hyperliquid.meta_and_asset_ctxs()

    def _collect(self) -> List[AssetSnapshot]:
        payload = self._asset_contexts()
        if len(payload) < 2 or not isinstance(payload[0], Mapping):
            raise UpstreamError("hyperliquid", None, "unexpected metaAndAssetCtxs payload")
        universe = payload[0].get("universe") or []
        contexts = payload[1] or []

        found: Dict[str, AssetSnapshot] = {}
        for asset, context in zip(universe, contexts):
            name = str(asset.get("name", ""))
            if name not in self._symbols or not isinstance(context, Mapping):
                continue
            found[name] = AssetSnapshot(
                name=name,
                price=_number(context, "markPx") or 0.0,
                volume=_number(context, "dayNtlVlm") or 0.0,
                funding=_number(context, "funding"),
            )

        missing = [symbol for symbol in self._symbols if symbol not in found]
        if missing:
            logger.debug("No Hyperliquid context for {missing}", missing=", ".join(missing))
        return [found.get(symbol, AssetSnapshot(symbol, 0.0, 0.0, None)) for symbol in self._symbols]


__all__ = ["AssetSnapshot", "MARKET_SYMBOLS", "MarketDataService"]
