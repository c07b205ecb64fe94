"""Per-widget controller binding a chart surface to historical and streamed prices."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Sequence

from market_pulse.chart.ranges import window_for
from market_pulse.data.cache import TTLCache, make_key
from market_pulse.data.client import CandleSource, ChartSurface
from market_pulse.data.memory import CandlePoint, TopOfBookTick, candles_from_records
from market_pulse.data.ratelimit import RateLimiter, RequestThrottled
from market_pulse.data.stream import StreamSessionManager
from market_pulse.utils import from_epoch_ms, now_ms

LOGGER = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 8.0


class ChartState(str, Enum):
    INITIALIZING = "initializing"
    LOADING = "loading"
    READY = "ready"
    STALE = "stale"
    UPDATING = "updating"
    DISPOSED = "disposed"


class LoadStatus(str, Enum):
    """Outcome of a history load as seen by the presentation layer."""

    SUCCESS = "success"
    STALE = "stale"  # load failed, previously rendered data kept
    ERROR = "error"  # load failed, nothing rendered
    DISCARDED = "discarded"  # inputs moved on before the result arrived


@dataclass(slots=True)
class LoadResult:
    status: LoadStatus
    symbol: str
    range: str
    candles: List[CandlePoint] = field(default_factory=list)
    from_cache: bool = False
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.status is LoadStatus.SUCCESS


class ChartController:
    """Drive one chart: cached history load, live tick updates and teardown.

    Failures never propagate out of ``load_history``; they are reported through
    ``LoadResult`` while the surface keeps whatever it rendered last. Every asynchronous
    completion re-checks that the ``(symbol, range)`` it was started for is still current.
    """

    def __init__(
        self,
        symbol: str,
        range_token: str,
        *,
        surface: ChartSurface,
        source: CandleSource,
        cache: TTLCache[List[CandlePoint]],
        sessions: StreamSessionManager,
        rate_limiter: RateLimiter | None = None,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        clock: Callable[[], int] = now_ms,
        logger: logging.Logger | None = None,
    ) -> None:
        window_for(range_token)
        if fetch_timeout <= 0:
            raise ValueError("fetch_timeout must be positive")
        self._symbol = symbol.upper()
        self._range = range_token
        self._surface = surface
        self._source = source
        self._cache = cache
        self._sessions = sessions
        self._rate_limiter = rate_limiter
        self._fetch_timeout = float(fetch_timeout)
        self._clock = clock
        self._logger = logger or LOGGER
        self._state = ChartState.INITIALIZING
        self._rendered = False
        self._rendered_symbol: str | None = None

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def range(self) -> str:
        return self._range

    @property
    def state(self) -> ChartState:
        return self._state

    @property
    def surface(self) -> ChartSurface:
        return self._surface

    async def mount(self) -> LoadResult:
        """Initialise the surface, load history and claim the live stream."""

        if self._state is not ChartState.INITIALIZING:
            raise RuntimeError(f"cannot mount a controller in state {self._state.value}")
        self._surface.set_data([])
        result, _ = await asyncio.gather(self.load_history(), self._sync_stream())
        return result

    async def update(self, symbol: str, range_token: str) -> LoadResult:
        """React to new inputs: reload history and move the stream subscription if needed."""

        window_for(range_token)
        symbol = symbol.upper()
        if self._state is ChartState.DISPOSED:
            return LoadResult(LoadStatus.DISCARDED, symbol, range_token)

        self._symbol = symbol
        self._range = range_token
        self._state = ChartState.UPDATING
        result, _ = await asyncio.gather(self.load_history(), self._sync_stream())
        return result

    async def unmount(self) -> None:
        if self._state is ChartState.DISPOSED:
            return
        self._state = ChartState.DISPOSED
        await self._sessions.release(self)
        self._surface.remove()

    async def load_history(self) -> LoadResult:
        """Render history for the current inputs from cache or a bounded upstream request."""

        symbol, range_token = self._symbol, self._range
        if self._state is ChartState.DISPOSED:
            return LoadResult(LoadStatus.DISCARDED, symbol, range_token)

        self._state = ChartState.LOADING
        key = make_key(symbol, range_token)

        cached = self._cache.get(key)
        if cached is not None:
            self._logger.debug("Serving %s from cache (%d candles)", key, len(cached))
            self._render(symbol, cached)
            return LoadResult(LoadStatus.SUCCESS, symbol, range_token, list(cached), from_cache=True)

        if self._rate_limiter is not None and self._rate_limiter.should_skip(key):
            return self._fail(symbol, range_token, RequestThrottled(key, self._rate_limiter.remaining(key)))

        window = window_for(range_token)
        start, end = window.bounds(from_epoch_ms(self._clock()))
        try:
            records = await asyncio.wait_for(
                asyncio.to_thread(
                    self._source.fetch_candles,
                    symbol=symbol,
                    interval=window.interval,
                    start=start,
                    end=end,
                ),
                timeout=self._fetch_timeout,
            )
        except asyncio.TimeoutError as error:
            self._logger.warning("History request for %s timed out after %.1fs", key, self._fetch_timeout)
            return self._fail(symbol, range_token, error)
        except Exception as error:
            self._logger.warning("History request for %s failed: %s", key, error)
            return self._fail(symbol, range_token, error)

        candles = candles_from_records(records or [])
        self._cache.put(key, candles)

        if not self._is_current(symbol, range_token):
            self._logger.debug("Discarding late history for %s", key)
            return LoadResult(LoadStatus.DISCARDED, symbol, range_token, candles)

        self._render(symbol, candles)
        return LoadResult(LoadStatus.SUCCESS, symbol, range_token, candles)

    def _render(self, symbol: str, candles: Sequence[CandlePoint]) -> None:
        self._surface.set_data(candles)
        if candles:
            self._surface.fit_content()
        self._rendered = bool(candles)
        self._rendered_symbol = symbol if self._rendered else None
        self._state = ChartState.READY if self._rendered else ChartState.STALE

    def _fail(self, symbol: str, range_token: str, error: BaseException) -> LoadResult:
        if not self._is_current(symbol, range_token):
            return LoadResult(LoadStatus.DISCARDED, symbol, range_token, error=error)
        if self._rendered:
            self._state = ChartState.READY
            return LoadResult(LoadStatus.STALE, symbol, range_token, self._surface.data(), error=error)
        self._state = ChartState.STALE
        return LoadResult(LoadStatus.ERROR, symbol, range_token, error=error)

    def _is_current(self, symbol: str, range_token: str) -> bool:
        return (
            self._state is not ChartState.DISPOSED
            and self._symbol == symbol
            and self._range == range_token
        )

    async def _sync_stream(self) -> None:
        if self._state is ChartState.DISPOSED:
            return
        await self._sessions.ensure_subscription(self._symbol, owner=self, listener=self._on_tick)
        if self._state is ChartState.DISPOSED:
            await self._sessions.release(self)

    def _on_tick(self, tick: TopOfBookTick) -> None:
        if self._state is ChartState.DISPOSED or tick.symbol != self._symbol:
            return
        # after a failed switch the surface still shows the previous symbol
        if tick.symbol != self._rendered_symbol:
            return
        data = self._surface.data()
        if not data:
            return
        self._surface.update(data[-1].apply_price(tick.price))


__all__ = ["ChartController", "ChartState", "LoadResult", "LoadStatus"]
