"""Price chart controller."""

from market_pulse.chart.controller import ChartController, ChartState, LoadResult, LoadStatus
from market_pulse.chart.ranges import RANGE_WINDOWS, RangeWindow, window_for

__all__ = [
    "ChartController",
    "ChartState",
    "LoadResult",
    "LoadStatus",
    "RANGE_WINDOWS",
    "RangeWindow",
    "window_for",
]
