"""Recent posts from a news account on the Twitter v2 API."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

import requests
from loguru import logger

from market_pulse.feeds.base import CachedFeed, UpstreamError, raise_for_upstream, upstream_retry
from market_pulse.utils import parse_iso8601

TWITTER_URL = "https://api.twitter.com/2"
TITLE_LENGTH = 100


@dataclass(frozen=True, slots=True)
class Post:
    id: str
    title: str
    summary: str
    timestamp_ms: int
    source: str
    url: str
    metrics: Dict[str, int] = field(default_factory=dict)


def headline(text: str, length: int = TITLE_LENGTH) -> str:
    if len(text) > length:
        return f"{text[:length]}..."
    return text


class SocialFeedService:
    """Resolve an account and return its latest posts as news items."""

    def __init__(
        self,
        *,
        bearer_token: str | None,
        feed: CachedFeed[List[Post]],
        base_url: str = TWITTER_URL,
        session: requests.Session | None = None,
        request_timeout: float = 10.0,
    ) -> None:
        self._bearer_token = bearer_token
        self._feed = feed
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = request_timeout

    def fetch(self, username: str, limit: int = 10) -> List[Post]:
        if not self._bearer_token:
            raise UpstreamError("twitter", None, "bearer token not configured")
        # the tweets endpoint only accepts 5..100 results
        limit = min(max(int(limit), 5), 100)
        return self._feed.get_or_fetch("tweets", username, limit, lambda: self._collect(username, limit))

    @upstream_retry
    def _get(self, path: str, params: Dict[str, Any] | None = None) -> Dict[str, Any]:
        response = self._session.get(
            f"{self._base_url}{path}",
            params=params,
            headers={"Authorization": f"Bearer {self._bearer_token}"},
            timeout=self._timeout,
        )
        raise_for_upstream(response, "twitter")
        return response.json()

    def _collect(self, username: str, limit: int) -> List[Post]:
        user = self._get(f"/users/by/username/{username}")
        user_id = (user.get("data") or {}).get("id")
        if not user_id:
            raise UpstreamError("twitter", None, f"user {username} not found")

        payload = self._get(
            f"/users/{user_id}/tweets",
            params={"max_results": limit, "tweet.fields": "created_at,public_metrics"},
        )
        posts: List[Post] = []
        for tweet in payload.get("data") or []:
            post = self._to_post(tweet, username)
            if post is not None:
                posts.append(post)
        logger.debug("Fetched {count} posts for @{user}", count=len(posts), user=username)
        return posts

    @staticmethod
    def _to_post(tweet: Dict[str, Any], username: str) -> Post | None:
        try:
            tweet_id = str(tweet["id"])
            text = str(tweet.get("text", ""))
            created = parse_iso8601(str(tweet["created_at"]))
        except (KeyError, ValueError):
            return None
        metrics = tweet.get("public_metrics") or {}
        return Post(
            id=tweet_id,
            title=headline(text),
            summary=text,
            timestamp_ms=int(created.timestamp() * 1000),
            source=f"@{username}",
            url=f"https://twitter.com/{username}/status/{tweet_id}",
            metrics={
                "retweets": int(metrics.get("retweet_count", 0) or 0),
                "likes": int(metrics.get("like_count", 0) or 0),
                "replies": int(metrics.get("reply_count", 0) or 0),
            },
        )


__all__ = ["Post", "SocialFeedService", "TWITTER_URL", "headline"]
