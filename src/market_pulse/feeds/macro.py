"""Macro indicators and long-running money supply series from the FRED observations API."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List

import requests
from loguru import logger

from market_pulse.feeds.base import CachedFeed, UpstreamError, raise_for_upstream, upstream_retry
from market_pulse.utils import from_epoch_ms, now_ms

FRED_URL = "https://api.stlouisfed.org/fred/series/observations"
SERIES_TTL_SECONDS = 24 * 60 * 60
MISSING_VALUE = "."


@dataclass(frozen=True, slots=True)
class Indicator:
    name: str
    value: str
    date: str


@dataclass(frozen=True, slots=True)
class SeriesInfo:
    title: str
    unit: str
    description: str


@dataclass(frozen=True, slots=True)
class SeriesPoint:
    date: str
    value: float


M2_SERIES = "M2SL"
MMF_SERIES = "MMMFFAQ027S"

SERIES_INFO: Dict[str, SeriesInfo] = {
    M2_SERIES: SeriesInfo(
        "M2 Money Supply",
        "Billions of Dollars",
        "M2 money supply includes cash, checking deposits, and easily-convertible near money",
    ),
    MMF_SERIES: SeriesInfo(
        "Money Market Funds",
        "Millions of Dollars",
        "Money Market Funds; Total Financial Assets, Level",
    ),
}


def years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return day.replace(year=day.year - years, day=28)


def _fred_error(series_id: str, error: Exception) -> UpstreamError:
    if isinstance(error, UpstreamError):
        return error
    return UpstreamError("fred", None, f"{series_id}: {error}")


class MacroIndicatorService:
    """GDP, CPI inflation and unemployment, formatted for display.

    A series that fails is logged and left out. When every series fails the last error is
    raised instead, so an empty answer never lands in the cache.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        feed: CachedFeed[List[Indicator]],
        base_url: str = FRED_URL,
        session: requests.Session | None = None,
        request_timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._feed = feed
        self._base_url = base_url
        self._session = session or requests.Session()
        self._timeout = request_timeout

    def fetch(self) -> List[Indicator]:
        if not self._api_key:
            return []
        return self._feed.get_or_fetch("macro", "fred", 3, self._collect)

    def _collect(self) -> List[Indicator]:
        indicators: List[Indicator] = []
        failures: List[UpstreamError] = []

        gdp = self._latest("GDP", failures)
        if gdp is not None:
            raw, day = gdp
            try:
                indicators.append(Indicator("GDP (Quarterly)", f"{float(raw) / 1000:.2f}T", day))
            except ValueError:
                pass

        cpi = self._cpi_year_over_year(failures)
        if cpi is not None:
            indicators.append(cpi)

        unemployment = self._latest("UNRATE", failures)
        if unemployment is not None:
            raw, day = unemployment
            indicators.append(Indicator("Unemployment Rate", f"{raw}%", day))

        if len(failures) == 3:
            raise failures[-1]
        return indicators

    @upstream_retry
    def _observations(self, series_id: str, limit: int) -> List[Dict[str, Any]]:
        response = self._session.get(
            self._base_url,
            params={
                "series_id": series_id,
                "api_key": self._api_key,
                "file_type": "json",
                "limit": limit,
                "sort_order": "desc",
            },
            timeout=self._timeout,
        )
        raise_for_upstream(response, "fred")
        return response.json().get("observations") or []

    def _safe_observations(self, series_id: str, limit: int, failures: List[UpstreamError]) -> List[Dict[str, Any]]:
        try:
            return self._observations(series_id, limit)
        except (UpstreamError, requests.RequestException, ValueError) as error:
            logger.warning("FRED series {series} unavailable: {error}", series=series_id, error=error)
            failures.append(_fred_error(series_id, error))
            return []

    def _latest(self, series_id: str, failures: List[UpstreamError]) -> tuple[str, str] | None:
        observations = self._safe_observations(series_id, 1, failures)
        if not observations:
            return None
        try:
            raw = str(observations[0]["value"])
            day = str(observations[0]["date"])
        except (KeyError, TypeError):
            return None
        if raw == MISSING_VALUE:
            return None
        return raw, day

    def _cpi_year_over_year(self, failures: List[UpstreamError]) -> Indicator | None:
        observations = self._safe_observations("CPIAUCSL", 13, failures)
        if len(observations) < 13:
            return None
        try:
            current = float(observations[0]["value"])
            previous = float(observations[12]["value"])
        except (KeyError, TypeError, ValueError):
            return None
        if previous == 0:
            return None
        yoy = (current - previous) / previous * 100
        return Indicator("CPI Inflation Rate", f"{yoy:.1f}%", str(observations[0]["date"]))


class MacroSeriesService:
    """Multi-year history of one FRED series, oldest first, with missing values dropped."""

    def __init__(
        self,
        series_id: str,
        years: int = 5,
        *,
        api_key: str | None,
        feed: CachedFeed[List[SeriesPoint]],
        base_url: str = FRED_URL,
        session: requests.Session | None = None,
        request_timeout: float = 10.0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        if years < 1:
            raise ValueError("years must be at least 1")
        self.series_id = series_id
        self.years = years
        self._api_key = api_key
        self._feed = feed
        self._base_url = base_url
        self._session = session or requests.Session()
        self._timeout = request_timeout
        self._clock = clock

    @property
    def info(self) -> SeriesInfo:
        return SERIES_INFO.get(self.series_id, SeriesInfo(self.series_id, "", ""))

    def fetch(self) -> List[SeriesPoint]:
        if not self._api_key:
            raise UpstreamError("fred", None, "API key not configured")
        return self._feed.get_or_fetch("series", self.series_id, self.years, self._collect)

    def _collect(self) -> List[SeriesPoint]:
        points: List[SeriesPoint] = []
        for row in self._observations():
            raw = row.get("value")
            if raw is None or raw == MISSING_VALUE:
                continue
            try:
                points.append(SeriesPoint(str(row["date"]), float(raw)))
            except (KeyError, TypeError, ValueError):
                continue
        logger.debug("FRED {series}: {count} observations", series=self.series_id, count=len(points))
        return points

    @upstream_retry
    def _observations(self) -> List[Dict[str, Any]]:
        end = from_epoch_ms(self._clock()).date()
        start = years_before(end, self.years)
        response = self._session.get(
            self._base_url,
            params={
                "series_id": self.series_id,
                "api_key": self._api_key,
                "file_type": "json",
                "observation_start": start.isoformat(),
                "observation_end": end.isoformat(),
                "sort_order": "asc",
            },
            timeout=self._timeout,
        )
        raise_for_upstream(response, "fred")
        return response.json().get("observations") or []


__all__ = [
    "FRED_URL",
    "Indicator",
    "M2_SERIES",
    "MMF_SERIES",
    "MacroIndicatorService",
    "MacroSeriesService",
    "SERIES_INFO",
    "SERIES_TTL_SECONDS",
    "SeriesInfo",
    "SeriesPoint",
    "years_before",
]
