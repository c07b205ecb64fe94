"""Thin wrapper around the python-binance REST client."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from binance import Client

from market_pulse.utils import to_epoch_ms

MAX_KLINES_PER_REQUEST = 1000


class BinanceRESTClient:
    """Provide public spot klines and USD-M premium index data with resource cleanup."""

    def __init__(
        self,
        api_key: str | None = None,
        api_secret: str | None = None,
        *,
        base_url: str | None = None,
        futures_url: str | None = None,
        quote_asset: str = "USDT",
        request_timeout: float = 10.0,
        client: Client | None = None,
    ) -> None:
        self._client = client or Client(api_key, api_secret, requests_params={"timeout": request_timeout})
        if base_url:
            self._client.API_URL = base_url
        if futures_url:
            self._client.FUTURES_URL = futures_url
        self._quote_asset = quote_asset.upper()

    def __enter__(self) -> "BinanceRESTClient":
        return self

    def __exit__(self, *_) -> None:
        self.close()

    def close(self) -> None:
        """Release the underlying HTTP session."""

        if hasattr(self._client, "session") and self._client.session:
            self._client.session.close()

    def market_symbol(self, symbol: str) -> str:
        """Map a base asset (``BTC``) onto its quoted market (``BTCUSDT``)."""

        upper = symbol.upper()
        if upper.endswith(self._quote_asset):
            return upper
        return f"{upper}{self._quote_asset}"

    def fetch_candles(self, *, symbol: str, interval: str, start: datetime, end: datetime) -> List[List[Any]]:
        """Spot klines for the quoted market of ``symbol``."""

        return self._client.get_klines(  # type: ignore[no-any-return]
            symbol=self.market_symbol(symbol),
            interval=interval,
            startTime=to_epoch_ms(start),
            endTime=to_epoch_ms(end),
            limit=MAX_KLINES_PER_REQUEST,
        )

    def premium_index(self) -> List[Dict[str, Any]]:
        """Mark price and last funding rate for every USD-M perpetual."""

        payload = self._client.futures_mark_price()
        if isinstance(payload, dict):
            return [payload]
        return list(payload or [])


__all__ = ["BinanceRESTClient", "MAX_KLINES_PER_REQUEST"]
