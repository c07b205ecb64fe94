"""Utility helpers."""

from market_pulse.utils.datetime import ensure_utc, from_epoch_ms, now_ms, parse_iso8601, to_epoch_ms

__all__ = ["ensure_utc", "from_epoch_ms", "now_ms", "parse_iso8601", "to_epoch_ms"]
