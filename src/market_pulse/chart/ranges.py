"""Chart range tokens and the request windows they map to."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict

from market_pulse.utils import ensure_utc


@dataclass(frozen=True, slots=True)
class RangeWindow:
    """Candle interval code and lookback span for a range token."""

    interval: str
    lookback: timedelta

    def bounds(self, end: datetime) -> tuple[datetime, datetime]:
        end_utc = ensure_utc(end)
        return end_utc - self.lookback, end_utc


RANGE_WINDOWS: Dict[str, RangeWindow] = {
    "1D": RangeWindow("15m", timedelta(days=1)),
    "7D": RangeWindow("1h", timedelta(days=7)),
    "1M": RangeWindow("4h", timedelta(days=30)),
    "3M": RangeWindow("4h", timedelta(days=90)),
    "1Y": RangeWindow("4h", timedelta(days=365)),
}


def window_for(range_token: str) -> RangeWindow:
    try:
        return RANGE_WINDOWS[range_token]
    except KeyError:
        raise ValueError(f"Unsupported range: {range_token}") from None


__all__ = ["RANGE_WINDOWS", "RangeWindow", "window_for"]
