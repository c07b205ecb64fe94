"""Shared plumbing for the request/response dashboard feeds."""
from __future__ import annotations

from typing import Callable, Generic, TypeVar

import requests
from loguru import logger
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from market_pulse.data.cache import TTLCache, make_key
from market_pulse.data.ratelimit import RateLimiter, RequestThrottled

T = TypeVar("T")


class UpstreamError(RuntimeError):
    """An upstream API answered with a failure status or an unusable body."""

    def __init__(self, source: str, status: int | None, detail: str = "") -> None:
        message = f"{source} request failed"
        if status is not None:
            message = f"{message} with status {status}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.source = source
        self.status = status


class UpstreamRateLimited(UpstreamError):
    """The upstream API rejected the request with HTTP 429."""


def raise_for_upstream(response: requests.Response, source: str) -> None:
    if response.status_code == 429:
        raise UpstreamRateLimited(source, 429, "rate limit exceeded, try again later")
    if not response.ok:
        raise UpstreamError(source, response.status_code, response.text[:200])


# Only transport failures are retried; error statuses surface immediately.
upstream_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    reraise=True,
)


class CachedFeed(Generic[T]):
    """Serve feed payloads from a TTL cache, throttling upstream calls per key."""

    def __init__(self, *, cache: TTLCache[T], rate_limiter: RateLimiter) -> None:
        self._cache = cache
        self._rate_limiter = rate_limiter

    def get_or_fetch(self, kind: str, channel: str, limit: int, loader: Callable[[], T]) -> T:
        key = make_key(kind, channel, limit)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        if self._rate_limiter.should_skip(key):
            raise RequestThrottled(key, self._rate_limiter.remaining(key))

        data = loader()
        self._cache.put(key, data)
        logger.debug("Refreshed feed {key}", key=key)
        return data


__all__ = ["CachedFeed", "UpstreamError", "UpstreamRateLimited", "raise_for_upstream", "upstream_retry"]
