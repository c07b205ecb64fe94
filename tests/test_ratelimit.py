"""Tests for the per-key request throttle."""
from __future__ import annotations

import pytest

from market_pulse.data.ratelimit import RateLimiter


class FakeClock:
    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


def test_second_call_within_interval_is_skipped() -> None:
    clock = FakeClock()
    limiter = RateLimiter(10, clock=clock)

    assert limiter.should_skip("BTC-1D") is False
    clock.advance(9.9)
    assert limiter.should_skip("BTC-1D") is True


def test_call_after_interval_proceeds_and_records() -> None:
    clock = FakeClock()
    limiter = RateLimiter(10, clock=clock)
    limiter.should_skip("BTC-1D")

    clock.advance(10)

    assert limiter.should_skip("BTC-1D") is False
    assert limiter.last_request("BTC-1D") == clock.now


def test_skipped_call_does_not_extend_the_window() -> None:
    clock = FakeClock()
    limiter = RateLimiter(10, clock=clock)
    limiter.should_skip("key")
    clock.advance(6)
    assert limiter.should_skip("key") is True

    clock.advance(4)

    assert limiter.should_skip("key") is False


def test_keys_are_independent() -> None:
    limiter = RateLimiter(10, clock=FakeClock())

    assert limiter.should_skip("BTC-1D") is False
    assert limiter.should_skip("ETH-1D") is False
    assert limiter.remaining("BTC-1D") == pytest.approx(10.0)
    assert limiter.remaining("unknown") == 0.0


def test_negative_interval_rejected() -> None:
    with pytest.raises(ValueError):
        RateLimiter(-1)
