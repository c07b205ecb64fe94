"""In-memory data structures backing the price chart."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable, Iterator, List, Mapping, Sequence


@dataclass(frozen=True, slots=True)
class CandlePoint:
    """Single OHLC bucket keyed by its open time in epoch seconds."""

    time: int
    open: float
    high: float
    low: float
    close: float

    def apply_price(self, price: float) -> "CandlePoint":
        """Return the candle continued with a new traded/quoted price."""

        return replace(
            self,
            close=price,
            high=max(self.high, price),
            low=min(self.low, price),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any] | Sequence[Any]) -> "CandlePoint | None":
        """Build a candle from an upstream record, returning ``None`` when it cannot be parsed.

        Two shapes are understood: the Hyperliquid snapshot mapping (``t``, ``o``, ``h``,
        ``l``, ``c``) and the Binance kline row ``[open_time, open, high, low, close, ...]``.
        Numeric fields may arrive as strings. ``t``/``open_time`` are epoch milliseconds.
        """

        try:
            if isinstance(record, Mapping):
                open_time = record["t"]
                fields = (record["o"], record["h"], record["l"], record["c"])
            else:
                open_time = record[0]
                fields = (record[1], record[2], record[3], record[4])
            time_s = int(float(open_time)) // 1000
            open_, high, low, close = (float(value) for value in fields)
        except (KeyError, IndexError, TypeError, ValueError):
            return None

        return cls(time=time_s, open=open_, high=high, low=low, close=close)


def candles_from_records(records: Iterable[Any]) -> List[CandlePoint]:
    """Map upstream records to candles, dropping unparseable or out-of-order rows."""

    candles: List[CandlePoint] = []
    for record in records:
        candle = CandlePoint.from_record(record)
        if candle is None:
            continue
        if candles and candle.time <= candles[-1].time:
            continue
        candles.append(candle)
    return candles


@dataclass(frozen=True, slots=True)
class TopOfBookTick:
    """Best bid/ask observed on the order book stream."""

    symbol: str
    price: float
    bid: float | None
    ask: float | None
    received_at_ms: int


class CandleSeries:
    """Rendering surface that keeps the charted candles in memory."""

    def __init__(self) -> None:
        self._items: List[CandlePoint] = []
        self._removed = False
        self.fit_count = 0

    def set_data(self, candles: Sequence[CandlePoint]) -> None:
        """Replace the whole series."""

        self._items = list(candles)

    def update(self, candle: CandlePoint) -> None:
        """Replace the last candle when it shares the bucket, otherwise append."""

        if self._items and self._items[-1].time == candle.time:
            self._items[-1] = candle
        elif not self._items or candle.time > self._items[-1].time:
            self._items.append(candle)

    def data(self) -> List[CandlePoint]:
        return list(self._items)

    def latest(self) -> CandlePoint | None:
        if not self._items:
            return None
        return self._items[-1]

    def fit_content(self) -> None:
        self.fit_count += 1

    def remove(self) -> None:
        """Detach the surface; further updates are ignored by the owner."""

        self._items.clear()
        self._removed = True

    @property
    def removed(self) -> bool:
        return self._removed

    def __len__(self) -> int:  # pragma: no cover - trivial
        return len(self._items)

    def __iter__(self) -> Iterator[CandlePoint]:  # pragma: no cover - trivial
        return iter(self._items)


__all__ = ["CandlePoint", "CandleSeries", "TopOfBookTick", "candles_from_records"]
