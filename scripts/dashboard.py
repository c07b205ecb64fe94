"""Terminal dashboard: live price chart plus market, funding, macro, on-chain and news feeds."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

import requests
import typer
from rich.console import Console
from rich.live import Live
from rich.table import Table

from market_pulse.chart import ChartController, LoadResult
from market_pulse.config import AppSettings, load_settings
from market_pulse.data import (
    BinanceRESTClient,
    CandlePoint,
    CandleSeries,
    HyperliquidRESTClient,
    RateLimiter,
    RequestThrottled,
    StreamSessionManager,
    TTLCache,
)
from market_pulse.feeds import (
    M2_SERIES,
    MMF_SERIES,
    CachedFeed,
    EthereumVolumeService,
    FundingRateService,
    MacroIndicatorService,
    MacroSeriesService,
    MarketDataService,
    SocialFeedService,
    UpstreamError,
)
from market_pulse.feeds.funding import annualise

app = typer.Typer(help="Market dashboard utilities")
console = Console()
LOGGER = logging.getLogger("market_pulse.dashboard")


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _feed(settings: AppSettings, limiter: RateLimiter, ttl_seconds: float | None = None) -> CachedFeed:
    cache = TTLCache(ttl_seconds or settings.cache.feed_ttl_seconds, capacity=settings.cache.capacity)
    return CachedFeed(cache=cache, rate_limiter=limiter)


def _candle_table(symbol: str, range_token: str, result: LoadResult | None, candles: List[CandlePoint]) -> Table:
    status = result.status.value if result is not None else "loading"
    table = Table(title=f"{symbol} {range_token} ({status})")
    for column in ("time", "open", "high", "low", "close"):
        table.add_column(column, justify="right")
    for candle in candles[-10:]:
        stamp = datetime.fromtimestamp(candle.time, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")
        table.add_row(stamp, f"{candle.open:,.2f}", f"{candle.high:,.2f}", f"{candle.low:,.2f}", f"{candle.close:,.2f}")
    return table


@app.command()
def chart(
    symbol: Optional[str] = typer.Option(None, help="Override symbol (default comes from ChartSettings)."),
    range_token: Optional[str] = typer.Option(None, "--range", help="One of 1D, 7D, 1M, 3M, 1Y."),
    refresh: float = typer.Option(1.0, min=0.1, help="Seconds between screen refreshes."),
    reload_every: float = typer.Option(60.0, min=1.0, help="Seconds between history reloads."),
    source: str = typer.Option("hyperliquid", help="Candle history source: hyperliquid or binance."),
) -> None:
    """Stream a live candle chart until interrupted."""

    _configure_logging()
    try:
        asyncio.run(_run_chart(symbol, range_token, refresh, reload_every, source))
    except KeyboardInterrupt:
        LOGGER.info("Chart interrupted by user")


async def _run_chart(
    symbol: str | None,
    range_token: str | None,
    refresh: float,
    reload_every: float,
    source_name: str,
) -> None:
    settings = load_settings()
    resolved_symbol = (symbol or settings.chart.symbol).upper()
    resolved_range = range_token or settings.chart.range

    sessions = StreamSessionManager(settings.hyperliquid.ws_url, channel=settings.hyperliquid.book_channel)
    cache = TTLCache(settings.cache.history_ttl_seconds, capacity=settings.cache.capacity)
    limiter = RateLimiter(settings.rate_limit.min_interval_seconds)
    surface = CandleSeries()

    if source_name == "binance":
        source_cm = BinanceRESTClient(
            settings.binance.api_key,
            settings.binance.api_secret,
            base_url=settings.binance.base_url,
            request_timeout=settings.history_request_timeout("binance"),
        )
    elif source_name == "hyperliquid":
        source_cm = HyperliquidRESTClient(
            info_url=settings.hyperliquid.info_url,
            request_timeout=settings.history_request_timeout("hyperliquid"),
        )
    else:
        raise typer.BadParameter(f"Unknown source: {source_name}")

    with source_cm as source:
        controller = ChartController(
            resolved_symbol,
            resolved_range,
            surface=surface,
            source=source,
            cache=cache,
            sessions=sessions,
            rate_limiter=limiter,
            fetch_timeout=settings.chart.fetch_timeout_seconds,
        )
        result = await controller.mount()
        loop = asyncio.get_running_loop()
        last_reload = loop.time()
        try:
            with Live(_candle_table(resolved_symbol, resolved_range, result, surface.data()), console=console) as live:
                while True:
                    await asyncio.sleep(refresh)
                    if loop.time() - last_reload >= reload_every:
                        # a dropped stream is only re-established by this periodic refresh
                        result = await controller.update(resolved_symbol, resolved_range)
                        last_reload = loop.time()
                    live.update(_candle_table(resolved_symbol, resolved_range, result, surface.data()))
        finally:
            await controller.unmount()
            await sessions.close()


@app.command()
def funding(symbols: List[str] = typer.Argument(None, help="Base assets, e.g. BTC ETH HYPE.")) -> None:
    """Print annualised funding rates."""

    _configure_logging()
    settings = load_settings()
    limiter = RateLimiter(settings.rate_limit.min_interval_seconds)
    with BinanceRESTClient(
        settings.binance.api_key,
        settings.binance.api_secret,
        base_url=settings.binance.base_url,
        futures_url=settings.binance.futures_url,
        request_timeout=settings.binance.request_timeout,
    ) as binance, HyperliquidRESTClient(
        info_url=settings.hyperliquid.info_url,
        request_timeout=settings.hyperliquid.request_timeout,
    ) as hyperliquid:
        service = FundingRateService(binance=binance, hyperliquid=hyperliquid, feed=_feed(settings, limiter))
        try:
            rates = service.fetch(symbols) if symbols else service.fetch()
        except (UpstreamError, RequestThrottled) as error:
            LOGGER.error("Funding rates unavailable: %s", error)
            raise typer.Exit(code=1) from error

    table = Table(title="Funding (APR)")
    for column in ("symbol", "exchange", "apr", "next funding"):
        table.add_column(column)
    for rate in rates:
        next_time = datetime.fromtimestamp(rate.next_funding_time_ms / 1000, tz=timezone.utc)
        table.add_row(rate.symbol, rate.exchange, f"{rate.apr_percent:.2f}%", next_time.strftime("%H:%M UTC"))
    console.print(table)


@app.command()
def macro() -> None:
    """Print headline macro indicators."""

    _configure_logging()
    settings = load_settings()
    service = MacroIndicatorService(
        api_key=settings.fred.api_key,
        feed=_feed(settings, RateLimiter(settings.rate_limit.min_interval_seconds)),
        base_url=settings.fred.base_url,
    )
    try:
        indicators = service.fetch()
    except (UpstreamError, RequestThrottled) as error:
        LOGGER.error("Macro indicators unavailable: %s", error)
        raise typer.Exit(code=1) from error
    if not indicators:
        LOGGER.warning("No macro indicators available (is FRED__API_KEY set?)")
        return
    table = Table(title="Macro")
    for column in ("indicator", "value", "date"):
        table.add_column(column)
    for indicator in indicators:
        table.add_row(indicator.name, indicator.value, indicator.date)
    console.print(table)


@app.command()
def markets() -> None:
    """Print price, 24h volume and funding for the watched perps."""

    _configure_logging()
    settings = load_settings()
    with HyperliquidRESTClient(
        info_url=settings.hyperliquid.info_url,
        request_timeout=settings.hyperliquid.request_timeout,
    ) as hyperliquid:
        service = MarketDataService(
            hyperliquid=hyperliquid,
            feed=_feed(settings, RateLimiter(settings.rate_limit.min_interval_seconds)),
        )
        try:
            assets = service.fetch()
        except (UpstreamError, RequestThrottled, requests.RequestException) as error:
            LOGGER.error("Market data unavailable: %s", error)
            raise typer.Exit(code=1) from error

    table = Table(title="Markets")
    for column in ("asset", "price", "24h volume", "funding (APR)"):
        table.add_column(column, justify="right")
    for asset in assets:
        funding = f"{annualise(asset.funding):.2f}%" if asset.funding is not None else "-"
        table.add_row(asset.name, f"{asset.price:,.4f}", f"${asset.volume:,.0f}", funding)
    console.print(table)


@app.command()
def series(
    name: str = typer.Argument("m2", help="m2 (M2SL) or mmf (MMMFFAQ027S)."),
    years: int = typer.Option(5, min=1, max=50, help="Years of history."),
    rows: int = typer.Option(12, min=1, help="Most recent observations to print."),
) -> None:
    """Print a money supply series from FRED."""

    _configure_logging()
    series_ids = {"m2": M2_SERIES, "mmf": MMF_SERIES}
    if name.lower() not in series_ids:
        raise typer.BadParameter(f"Unknown series: {name}")
    settings = load_settings()
    service = MacroSeriesService(
        series_ids[name.lower()],
        years,
        api_key=settings.fred.api_key,
        feed=_feed(settings, RateLimiter(settings.rate_limit.min_interval_seconds), settings.cache.series_ttl_seconds),
        base_url=settings.fred.base_url,
    )
    try:
        points = service.fetch()
    except (UpstreamError, RequestThrottled) as error:
        LOGGER.error("%s unavailable: %s", service.info.title, error)
        raise typer.Exit(code=1) from error

    table = Table(title=f"{service.info.title} ({service.info.unit})", caption=service.info.description)
    table.add_column("date")
    table.add_column("value", justify="right")
    for point in points[-rows:]:
        table.add_row(point.date, f"{point.value:,.1f}")
    console.print(table)


@app.command("eth-volume")
def eth_volume(days: int = typer.Option(30, min=1, max=365, help="Days of history.")) -> None:
    """Print daily Ethereum transaction counts."""

    _configure_logging()
    settings = load_settings()
    service = EthereumVolumeService(
        api_key=settings.etherscan.api_key,
        feed=_feed(settings, RateLimiter(settings.rate_limit.min_interval_seconds)),
        base_url=settings.etherscan.base_url,
    )
    try:
        volumes = service.fetch(days)
    except (UpstreamError, RequestThrottled) as error:
        LOGGER.error("Ethereum volume unavailable: %s", error)
        raise typer.Exit(code=1) from error

    table = Table(title=f"Ethereum transactions ({days}d)")
    table.add_column("date")
    table.add_column("transactions", justify="right")
    for volume in volumes:
        table.add_row(volume.date, f"{volume.value:,.0f}")
    console.print(table)


@app.command()
def news(
    username: Optional[str] = typer.Option(None, help="Account to read (default comes from TwitterSettings)."),
    limit: Optional[int] = typer.Option(None, min=5, max=100, help="Number of posts."),
) -> None:
    """Print the latest posts from the news account."""

    _configure_logging()
    settings = load_settings()
    service = SocialFeedService(
        bearer_token=settings.twitter.bearer_token,
        feed=_feed(settings, RateLimiter(settings.rate_limit.min_interval_seconds)),
        base_url=settings.twitter.base_url,
    )
    try:
        posts = service.fetch(username or settings.twitter.username, limit or settings.twitter.limit)
    except (UpstreamError, RequestThrottled) as error:
        LOGGER.error("News feed unavailable: %s", error)
        raise typer.Exit(code=1) from error

    for post in posts:
        posted = datetime.fromtimestamp(post.timestamp_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")
        console.print(f"[bold]{posted}[/bold] {post.title}  [dim]{post.url}[/dim]")


if __name__ == "__main__":
    app()
