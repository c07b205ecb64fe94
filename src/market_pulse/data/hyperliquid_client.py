"""Thin wrapper around the Hyperliquid ``/info`` REST endpoint."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List

import requests

from market_pulse.utils import to_epoch_ms

LOGGER = logging.getLogger(__name__)


class HyperliquidRESTClient:
    """Provide candle snapshots and asset contexts with resource cleanup."""

    def __init__(
        self,
        *,
        info_url: str = "https://api.hyperliquid.xyz/info",
        request_timeout: float = 10.0,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._info_url = info_url
        self._timeout = request_timeout
        self._session = session or requests.Session()
        self._logger = logger or LOGGER

    def __enter__(self) -> "HyperliquidRESTClient":
        return self

    def __exit__(self, *_) -> None:
        self.close()

    def close(self) -> None:
        """Release the underlying HTTP session."""

        self._session.close()

    def _post(self, body: Dict[str, Any]) -> Any:
        response = self._session.post(self._info_url, json=body, timeout=self._timeout)
        response.raise_for_status()
        return response.json()

    def candle_snapshot(self, *, coin: str, interval: str, start_ms: int, end_ms: int) -> List[Dict[str, Any]]:
        """Fetch candles for ``coin`` between two epoch-millisecond bounds."""

        payload = self._post(
            {
                "type": "candleSnapshot",
                "req": {"coin": coin, "interval": interval, "startTime": start_ms, "endTime": end_ms},
            }
        )
        if not isinstance(payload, list):
            self._logger.warning("Unexpected candleSnapshot payload for %s: %s", coin, type(payload).__name__)
            return []
        return payload

    def meta_and_asset_ctxs(self) -> List[Any]:
        """Return ``[meta, asset_contexts]`` for all perpetual markets."""

        payload = self._post({"type": "metaAndAssetCtxs"})
        if not isinstance(payload, list):
            return []
        return payload

    def fetch_candles(self, *, symbol: str, interval: str, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        return self.candle_snapshot(
            coin=symbol,
            interval=interval,
            start_ms=to_epoch_ms(start),
            end_ms=to_epoch_ms(end),
        )


__all__ = ["HyperliquidRESTClient"]
