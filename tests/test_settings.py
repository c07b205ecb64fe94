"""Tests for settings loading."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from market_pulse.config import AppSettings, load_settings


def test_defaults_match_dashboard_policy() -> None:
    settings = AppSettings()

    assert settings.cache.history_ttl_seconds == 300
    assert settings.cache.feed_ttl_seconds == 900
    assert settings.rate_limit.min_interval_seconds == 10
    assert settings.chart.fetch_timeout_seconds == 8
    assert settings.hyperliquid.book_channel == "l2Book"


def test_load_settings_reads_toml(tmp_path) -> None:
    path = tmp_path / "settings.toml"
    path.write_text('[chart]\nsymbol = "ETH"\nrange = "7D"\n\n[cache]\ncapacity = 16\n')

    settings = load_settings(path)

    assert settings.chart.symbol == "ETH"
    assert settings.chart.range == "7D"
    assert settings.cache.capacity == 16


def test_invalid_range_is_rejected(tmp_path) -> None:
    path = tmp_path / "settings.toml"
    path.write_text('[chart]\nrange = "2W"\n')

    with pytest.raises(ValidationError):
        load_settings(path)


def test_history_request_timeout_never_outlives_fetch_timeout() -> None:
    settings = AppSettings()

    assert settings.hyperliquid.request_timeout == 10
    assert settings.history_request_timeout("hyperliquid") == 8
    assert settings.history_request_timeout("binance") == 8


def test_history_request_timeout_keeps_shorter_client_timeout(tmp_path) -> None:
    path = tmp_path / "settings.toml"
    path.write_text("[hyperliquid]\nrequest_timeout = 3.5\n\n[chart]\nfetch_timeout_seconds = 5\n")

    settings = load_settings(path)

    assert settings.history_request_timeout("hyperliquid") == 3.5
    assert settings.history_request_timeout("binance") == 5


def test_series_and_etherscan_defaults() -> None:
    settings = AppSettings()

    assert settings.cache.series_ttl_seconds == 86400
    assert settings.etherscan.base_url == "https://api.etherscan.io/api"
    assert settings.etherscan.api_key is None
