"""Ethereum daily transaction counts from the Etherscan stats API."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Dict, List

import requests
from loguru import logger

from market_pulse.feeds.base import CachedFeed, UpstreamError, raise_for_upstream, upstream_retry
from market_pulse.utils import from_epoch_ms, now_ms

ETHERSCAN_URL = "https://api.etherscan.io/api"
DEFAULT_DAYS = 30


@dataclass(frozen=True, slots=True)
class DailyVolume:
    date: str
    value: float


class EthereumVolumeService:
    """Daily Ethereum transaction volume for the last ``days`` days, oldest first."""

    def __init__(
        self,
        *,
        api_key: str | None,
        feed: CachedFeed[List[DailyVolume]],
        base_url: str = ETHERSCAN_URL,
        session: requests.Session | None = None,
        request_timeout: float = 10.0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._api_key = api_key
        self._feed = feed
        self._base_url = base_url
        self._session = session or requests.Session()
        self._timeout = request_timeout
        self._clock = clock

    def fetch(self, days: int = DEFAULT_DAYS) -> List[DailyVolume]:
        if not self._api_key:
            raise UpstreamError("etherscan", None, "API key not configured")
        if days < 1:
            raise ValueError("days must be at least 1")
        return self._feed.get_or_fetch("eth-volume", "dailytx", days, lambda: self._collect(days))

    def _collect(self, days: int) -> List[DailyVolume]:
        volumes: List[DailyVolume] = []
        for row in self._daily_tx(days):
            try:
                day = from_epoch_ms(int(row["unixTime"]) * 1000).date().isoformat()
                volumes.append(DailyVolume(day, float(row["value"])))
            except (KeyError, TypeError, ValueError):
                continue
        logger.debug("Etherscan dailytx: {count} days", count=len(volumes))
        return volumes

    @upstream_retry
    def _daily_tx(self, days: int) -> List[Dict[str, Any]]:
        end = from_epoch_ms(self._clock())
        start = end - timedelta(days=days)
        response = self._session.get(
            self._base_url,
            params={
                "module": "stats",
                "action": "dailytx",
                "startdate": start.date().isoformat(),
                "enddate": end.date().isoformat(),
                "sort": "asc",
                "apikey": self._api_key,
            },
            timeout=self._timeout,
        )
        raise_for_upstream(response, "etherscan")
        body = response.json()
        result = body.get("result")
        # errors come back as HTTP 200 with status "0" and a message in result
        if not isinstance(result, list):
            raise UpstreamError("etherscan", response.status_code, str(result or body.get("message", ""))[:200])
        return result


__all__ = ["DEFAULT_DAYS", "DailyVolume", "ETHERSCAN_URL", "EthereumVolumeService"]
