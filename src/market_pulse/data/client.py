"""Collaborator interfaces for chart data and rendering."""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Protocol, Sequence

from market_pulse.data.memory import CandlePoint


class CandleSource(Protocol):
    """Historical candle provider."""

    def fetch_candles(self, *, symbol: str, interval: str, start: datetime, end: datetime) -> Sequence[Any]:
        """Return raw records convertible with ``CandlePoint.from_record``."""
        raise NotImplementedError


class ChartSurface(Protocol):
    """Minimal rendering surface a chart controller draws into."""

    def set_data(self, candles: Sequence[CandlePoint]) -> None:
        raise NotImplementedError

    def update(self, candle: CandlePoint) -> None:
        raise NotImplementedError

    def data(self) -> List[CandlePoint]:
        raise NotImplementedError

    def fit_content(self) -> None:
        raise NotImplementedError

    def remove(self) -> None:
        raise NotImplementedError
