"""Per-key throttle on request initiation."""
from __future__ import annotations

import logging
from typing import Callable, Dict

from market_pulse.utils import now_ms

LOGGER = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 10.0


class RequestThrottled(RuntimeError):
    """Raised when a request for a key was started too recently."""

    def __init__(self, key: str, remaining_seconds: float) -> None:
        super().__init__(f"request for {key!r} throttled ({remaining_seconds:.1f}s remaining)")
        self.key = key
        self.remaining_seconds = remaining_seconds


class RateLimiter:
    """Enforce a minimum interval between requests for the same key.

    This is not a token bucket: it bounds how often a request may be started per key,
    not overall throughput. Attempts are recorded at decision time, before the request
    resolves, so a burst of callers for one key lets only the first one through.
    """

    def __init__(
        self,
        min_interval_seconds: float = MIN_INTERVAL_SECONDS,
        *,
        clock: Callable[[], int] = now_ms,
        logger: logging.Logger | None = None,
    ) -> None:
        if min_interval_seconds < 0:
            raise ValueError("min_interval_seconds must be non-negative")
        self._interval_ms = int(min_interval_seconds * 1000)
        self._clock = clock
        self._logger = logger or LOGGER
        self._last_request: Dict[str, int] = {}

    def should_skip(self, key: str) -> bool:
        """Return True when ``key`` was requested within the interval; otherwise record now."""

        now = self._clock()
        last = self._last_request.get(key)
        if last is not None and now - last < self._interval_ms:
            self._logger.debug(
                "Skipping request for %s (%.2fs remaining)",
                key,
                self.remaining(key, now=now),
            )
            return True
        self._last_request[key] = now
        return False

    def remaining(self, key: str, *, now: int | None = None) -> float:
        """Seconds until ``key`` may be requested again."""

        last = self._last_request.get(key)
        if last is None:
            return 0.0
        current = self._clock() if now is None else now
        return max(self._interval_ms - (current - last), 0) / 1000.0

    def last_request(self, key: str) -> int | None:
        return self._last_request.get(key)


__all__ = ["MIN_INTERVAL_SECONDS", "RateLimiter", "RequestThrottled"]
