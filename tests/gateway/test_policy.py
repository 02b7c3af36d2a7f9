"""Tests for OriginPolicy."""

from __future__ import annotations

from termgate.config import Settings
from termgate.gateway.policy import OriginPolicy


class TestOriginPolicy:
    def test_wildcard_allows_everything(self) -> None:
        policy = OriginPolicy(["*"])
        assert policy.allow_all is True
        assert policy.is_allowed("https://anything.example") is True

    def test_listed_origin_allowed(self) -> None:
        policy = OriginPolicy(["https://console.example", "http://localhost:5173"])
        assert policy.is_allowed("https://console.example") is True
        assert policy.is_allowed("HTTP://LOCALHOST:5173/") is True

    def test_unlisted_origin_rejected(self) -> None:
        policy = OriginPolicy(["https://console.example"])
        assert policy.is_allowed("https://evil.example") is False

    def test_missing_origin_allowed(self) -> None:
        policy = OriginPolicy(["https://console.example"])
        assert policy.is_allowed(None) is True

    def test_empty_list_rejects_browsers(self) -> None:
        policy = OriginPolicy([])
        assert policy.is_allowed("https://console.example") is False

    def test_from_settings(self) -> None:
        settings = Settings(allowed_origins="https://a.example, https://b.example")
        policy = OriginPolicy.from_settings(settings)
        assert policy.is_allowed("https://b.example") is True
        assert policy.is_allowed("https://c.example") is False
