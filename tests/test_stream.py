"""Tests for the single-connection order book stream manager."""
from __future__ import annotations

import asyncio
import json

from market_pulse.data.stream import StreamSessionManager, parse_top_of_book


class FakeConnection:
    def __init__(self, url: str) -> None:
        self.url = url
        self.sent: list[str] = []
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue()

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def close(self) -> None:
        self.closed = True
        self._queue.put_nowait(None)

    def push(self, message) -> None:
        self._queue.put_nowait(message)

    def drop(self) -> None:
        self._queue.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._queue.get()
        if item is None:
            raise StopAsyncIteration
        return item


class FakeConnector:
    def __init__(self, fail: bool = False) -> None:
        self.connections: list[FakeConnection] = []
        self.fail = fail

    async def __call__(self, url: str) -> FakeConnection:
        if self.fail:
            raise OSError("connection refused")
        connection = FakeConnection(url)
        self.connections.append(connection)
        return connection


def book(coin: str | None, bid: str, ask: str = "0") -> dict:
    data = {"levels": [[{"px": bid, "sz": "1.0", "n": 1}], [{"px": ask, "sz": "2.0", "n": 1}]]}
    if coin is not None:
        data["coin"] = coin
    return {"channel": "l2Book", "data": data}


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def test_switching_symbol_closes_previous_connection() -> None:
    async def scenario():
        connector = FakeConnector()
        manager = StreamSessionManager("wss://example/ws", connect=connector)
        owner = object()
        await manager.ensure_subscription("btc", owner=owner, listener=lambda tick: None)
        await manager.ensure_subscription("ETH", owner=owner, listener=lambda tick: None)
        await manager.close()
        return connector, manager

    connector, manager = asyncio.run(scenario())

    first, second = connector.connections
    assert first.closed
    assert json.loads(first.sent[0]) == {"method": "subscribe", "subscription": {"type": "l2Book", "coin": "BTC"}}
    assert json.loads(second.sent[0])["subscription"]["coin"] == "ETH"
    assert manager.connections_opened == 2


def test_active_session_tracks_latest_symbol() -> None:
    async def scenario():
        connector = FakeConnector()
        manager = StreamSessionManager(connect=connector)
        await manager.ensure_subscription("BTC", owner="a", listener=lambda tick: None)
        await manager.ensure_subscription("ETH", owner="a", listener=lambda tick: None)
        open_connections = [c for c in connector.connections if not c.closed]
        return manager.active_symbol, open_connections

    symbol, open_connections = asyncio.run(scenario())

    assert symbol == "ETH"
    assert len(open_connections) == 1


def test_same_symbol_reuses_connection() -> None:
    async def scenario():
        connector = FakeConnector()
        manager = StreamSessionManager(connect=connector)
        first = await manager.ensure_subscription("BTC", owner="a", listener=lambda tick: None)
        second = await manager.ensure_subscription("BTC", owner="b", listener=lambda tick: None)
        return connector, first, second

    connector, first, second = asyncio.run(scenario())

    assert len(connector.connections) == 1
    assert first is second
    assert second.claimant == "b"


def test_tick_for_other_symbol_is_ignored() -> None:
    received = []

    async def scenario():
        manager = StreamSessionManager(connect=FakeConnector())
        await manager.ensure_subscription("ETH", owner="a", listener=received.append)
        return manager.handle_incoming_tick(json.dumps(book("BTC", "64000")))

    assert asyncio.run(scenario()) is None
    assert received == []


def test_matching_tick_reaches_listeners() -> None:
    received = []

    async def scenario():
        manager = StreamSessionManager(connect=FakeConnector(), clock=lambda: 42)
        await manager.ensure_subscription("ETH", owner="a", listener=received.append)
        return manager.handle_incoming_tick(book("ETH", "3000.5", "3001"))

    tick = asyncio.run(scenario())

    assert tick is not None
    assert tick.price == 3000.5
    assert tick.ask == 3001.0
    assert tick.received_at_ms == 42
    assert received == [tick]


def test_malformed_messages_are_dropped() -> None:
    async def scenario():
        manager = StreamSessionManager(connect=FakeConnector())
        await manager.ensure_subscription("ETH", owner="a", listener=lambda tick: None)
        return [
            manager.handle_incoming_tick("not json"),
            manager.handle_incoming_tick({"channel": "trades", "data": {}}),
            manager.handle_incoming_tick({"channel": "l2Book", "data": {"levels": [[]]}}),
            manager.handle_incoming_tick({"channel": "subscriptionResponse", "data": {"method": "subscribe"}}),
        ]

    assert asyncio.run(scenario()) == [None, None, None, None]


def test_reader_dispatches_streamed_messages() -> None:
    received = []

    async def scenario():
        connector = FakeConnector()
        manager = StreamSessionManager(connect=connector)
        await manager.ensure_subscription("BTC", owner="a", listener=received.append)
        connector.connections[0].push(json.dumps(book("BTC", "65000")))
        await _settle()
        await manager.close()

    asyncio.run(scenario())

    assert [tick.price for tick in received] == [65000.0]


def test_dropped_connection_clears_session_without_reconnecting() -> None:
    async def scenario():
        connector = FakeConnector()
        manager = StreamSessionManager(connect=connector)
        await manager.ensure_subscription("BTC", owner="a", listener=lambda tick: None)
        connector.connections[0].drop()
        await _settle()
        cleared = manager.active_session is None
        count_after_drop = len(connector.connections)
        await manager.ensure_subscription("BTC", owner="a", listener=lambda tick: None)
        await manager.close()
        return cleared, count_after_drop, len(connector.connections)

    cleared, count_after_drop, count_after_retry = asyncio.run(scenario())

    assert cleared
    assert count_after_drop == 1
    assert count_after_retry == 2


def test_connect_failure_is_swallowed() -> None:
    async def scenario():
        manager = StreamSessionManager(connect=FakeConnector(fail=True))
        session = await manager.ensure_subscription("BTC", owner="a", listener=lambda tick: None)
        return session, manager.active_session

    assert asyncio.run(scenario()) == (None, None)


def test_release_closes_only_for_last_claimant() -> None:
    async def scenario():
        connector = FakeConnector()
        manager = StreamSessionManager(connect=connector)
        await manager.ensure_subscription("BTC", owner="a", listener=lambda tick: None)
        await manager.ensure_subscription("BTC", owner="b", listener=lambda tick: None)
        released_a = await manager.release("a")
        still_open = not connector.connections[0].closed
        released_b = await manager.release("b")
        return released_a, still_open, released_b, connector.connections[0].closed, manager.active_symbol

    released_a, still_open, released_b, closed, symbol = asyncio.run(scenario())

    assert released_a is False
    assert still_open
    assert released_b is True
    assert closed
    assert symbol is None


def test_release_by_latest_claimant_hands_claim_to_remaining_listener() -> None:
    async def scenario():
        manager = StreamSessionManager(connect=FakeConnector())
        await manager.ensure_subscription("BTC", owner="a", listener=lambda tick: None)
        session = await manager.ensure_subscription("BTC", owner="b", listener=lambda tick: None)
        closed = await manager.release("b")
        return closed, session.claimant, manager.active_symbol

    assert asyncio.run(scenario()) == (False, "a", "BTC")


def test_parse_top_of_book_accepts_price_key() -> None:
    message = {"channel": "order-book-top", "data": {"levels": [[{"price": "10", "size": "1"}], []]}}

    assert parse_top_of_book(message, channel="order-book-top") == (None, 10.0, None)
