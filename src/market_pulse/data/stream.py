"""Process-wide owner of the single live order-book WebSocket."""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

import websockets

from market_pulse.data.memory import TopOfBookTick
from market_pulse.utils import now_ms

LOGGER = logging.getLogger(__name__)

DEFAULT_WS_URL = "wss://api.hyperliquid.xyz/ws"
DEFAULT_CHANNEL = "l2Book"

Listener = Callable[[TopOfBookTick], None]
Connector = Callable[[str], Awaitable[Any]]


def _default_connect(url: str) -> Awaitable[Any]:
    return websockets.connect(url, ping_interval=20, ping_timeout=20)


def subscribe_message(symbol: str, channel: str = DEFAULT_CHANNEL) -> dict[str, Any]:
    return {"method": "subscribe", "subscription": {"type": channel, "coin": symbol.upper()}}


def _level_price(level: Any) -> float | None:
    if not isinstance(level, Mapping):
        return None
    raw = level.get("px", level.get("price"))
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def parse_top_of_book(message: Mapping[str, Any], *, channel: str = DEFAULT_CHANNEL) -> Optional[Tuple[str | None, float, float | None]]:
    """Extract ``(coin, best_bid, best_ask)`` from a book message, or ``None``."""

    if message.get("channel") != channel:
        return None
    data = message.get("data")
    if not isinstance(data, Mapping):
        return None
    levels = data.get("levels")
    if not isinstance(levels, (list, tuple)) or not levels:
        return None

    bids = levels[0] if isinstance(levels[0], (list, tuple)) else []
    asks = levels[1] if len(levels) > 1 and isinstance(levels[1], (list, tuple)) else []
    bid = _level_price(bids[0]) if bids else None
    if bid is None:
        return None
    ask = _level_price(asks[0]) if asks else None

    coin = data.get("coin")
    return (str(coin) if coin is not None else None, bid, ask)


@dataclass(slots=True, eq=False)
class StreamSession:
    """An open subscription and the controllers listening to it."""

    symbol: str
    connection: Any
    opened_at_ms: int
    listeners: Dict[object, Listener] = field(default_factory=dict)
    claimant: object | None = None
    reader: asyncio.Task | None = None


class StreamSessionManager:
    """Keep at most one order-book stream open, replacing it when the symbol changes.

    A dropped connection only clears the active reference; nothing reconnects on its own.
    The next ``ensure_subscription`` call (a re-render or user navigation) opens a fresh one.
    """

    def __init__(
        self,
        url: str = DEFAULT_WS_URL,
        *,
        channel: str = DEFAULT_CHANNEL,
        connect: Connector | None = None,
        clock: Callable[[], int] = now_ms,
        logger: logging.Logger | None = None,
    ) -> None:
        self._url = url
        self._channel = channel
        self._connect = connect or _default_connect
        self._clock = clock
        self._logger = logger or LOGGER
        self._active: StreamSession | None = None
        self._lock = asyncio.Lock()
        self.connections_opened = 0

    @property
    def active_session(self) -> StreamSession | None:
        return self._active

    @property
    def active_symbol(self) -> str | None:
        if self._active is None:
            return None
        return self._active.symbol

    async def ensure_subscription(self, symbol: str, *, owner: object, listener: Listener) -> StreamSession | None:
        """Make ``symbol`` the streamed symbol and register ``owner`` as its latest claimant."""

        symbol = symbol.upper()
        async with self._lock:
            session = self._active
            if session is not None and session.symbol != symbol:
                self._logger.info("Switching order book stream from %s to %s", session.symbol, symbol)
                await self._teardown(session)
                session = None

            if session is None:
                session = await self._open(symbol)
                if session is None:
                    return None

            session.listeners.pop(owner, None)
            session.listeners[owner] = listener
            session.claimant = owner
            return session

    async def release(self, owner: object) -> bool:
        """Drop ``owner``'s claim; returns True when the connection was closed."""

        async with self._lock:
            session = self._active
            if session is None or owner not in session.listeners:
                return False
            del session.listeners[owner]
            if session.claimant is not owner:
                return False
            if session.listeners:
                session.claimant = next(reversed(session.listeners))
                return False
            await self._teardown(session)
            return True

    async def close(self) -> None:
        """Tear down the active stream, if any."""

        async with self._lock:
            if self._active is not None:
                await self._teardown(self._active)

    def handle_incoming_tick(self, payload: Any) -> TopOfBookTick | None:
        """Apply a raw stream message against the active subscription."""

        if self._active is None:
            return None
        return self._dispatch(self._active, payload)

    async def _open(self, symbol: str) -> StreamSession | None:
        try:
            connection = await self._connect(self._url)
        except Exception as error:
            self._logger.warning("Failed to open order book stream for %s: %s", symbol, error)
            return None

        session = StreamSession(symbol=symbol, connection=connection, opened_at_ms=self._clock())
        self._active = session
        try:
            await connection.send(json.dumps(subscribe_message(symbol, self._channel)))
        except Exception as error:
            self._logger.warning("Failed to subscribe to %s book: %s", symbol, error)
            await self._teardown(session)
            return None

        session.reader = asyncio.create_task(self._read(session), name=f"book-stream-{symbol}")
        self.connections_opened += 1
        self._logger.info("Subscribed to %s order book stream: %s", symbol, self._url)
        return session

    async def _teardown(self, session: StreamSession) -> None:
        if self._active is session:
            self._active = None
        session.listeners.clear()
        session.claimant = None
        try:
            await session.connection.close()
        except Exception as error:
            self._logger.debug("Error while closing %s stream: %s", session.symbol, error)
        reader = session.reader
        if reader is not None and not reader.done() and reader is not asyncio.current_task():
            reader.cancel()

    async def _read(self, session: StreamSession) -> None:
        try:
            async for payload in session.connection:
                if session is not self._active:
                    break
                try:
                    self._dispatch(session, payload)
                except Exception:
                    self._logger.exception("Tick listener failed for %s", session.symbol)
        except Exception as error:
            self._logger.warning("Order book stream for %s failed: %s", session.symbol, error)
        finally:
            if self._active is session:
                self._active = None
                self._logger.info("Order book stream for %s closed", session.symbol)

    def _dispatch(self, session: StreamSession, payload: Any) -> TopOfBookTick | None:
        if session is not self._active:
            return None

        message = payload
        if isinstance(payload, (str, bytes, bytearray)):
            try:
                message = json.loads(payload)
            except ValueError:
                self._logger.debug("Dropping undecodable stream payload")
                return None
        if not isinstance(message, Mapping):
            return None

        parsed = parse_top_of_book(message, channel=self._channel)
        if parsed is None:
            return None
        coin, bid, ask = parsed
        if coin is not None and coin.upper() != session.symbol:
            return None

        tick = TopOfBookTick(
            symbol=session.symbol,
            price=bid,
            bid=bid,
            ask=ask,
            received_at_ms=self._clock(),
        )
        for listener in list(session.listeners.values()):
            listener(tick)
        return tick


__all__ = [
    "StreamSession",
    "StreamSessionManager",
    "parse_top_of_book",
    "subscribe_message",
]
