"""Unit tests for configuration loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from render_gateway.config import CacheSettings, Settings, UpstreamSettings


class TestDefaults:
    def test_upstream_defaults(self) -> None:
        upstream = UpstreamSettings()
        assert upstream.token is None
        assert upstream.content_url.endswith("/content")
        assert upstream.screenshot_url.endswith("/screenshot")
        assert upstream.screenshot_retries == 3
        assert upstream.empty_body_retry_increment_ms > 0

    def test_client_timeout_outlasts_navigation(self) -> None:
        upstream = UpstreamSettings()
        assert upstream.request_timeout_seconds * 1000 > upstream.navigation_timeout_ms

    def test_cache_defaults_enabled(self) -> None:
        cache = CacheSettings()
        assert cache.ttl_seconds > 0
        assert cache.max_entries > 0

    def test_body_limit_one_mebibyte(self) -> None:
        assert Settings().server.max_body_bytes == 1024 * 1024


class TestEnvironment:
    def test_nested_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RENDER_GATEWAY__UPSTREAM__TOKEN", "secret")
        monkeypatch.setenv("RENDER_GATEWAY__CACHE__MAX_ENTRIES", "7")
        settings = Settings()
        assert settings.upstream.token == "secret"
        assert settings.cache.max_entries == 7

    def test_constructor_beats_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RENDER_GATEWAY__CACHE__TTL_SECONDS", "10")
        settings = Settings(cache={"ttl_seconds": 20})
        assert settings.cache.ttl_seconds == 20


class TestPlatformEnvironment:
    def test_unprefixed_variables_are_read(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BROWSERLESS_TOKEN", "platform-token")
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("RENDER_EXTERNAL_URL", "https://gw.example.com")
        monkeypatch.setenv("SELF_PING_URL", "https://gw.example.com/health")
        settings = Settings()
        assert settings.upstream.token == "platform-token"
        assert settings.server.port == 8080
        assert settings.server.public_url == "https://gw.example.com"
        assert settings.keepalive.url == "https://gw.example.com/health"

    def test_browserless_url_sets_both_endpoints(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BROWSERLESS_URL", "https://chrome.example.com/content")
        upstream = Settings().upstream
        assert upstream.content_url == "https://chrome.example.com/content"
        assert upstream.screenshot_url == "https://chrome.example.com/screenshot"

    def test_browserless_url_without_content_path_keeps_screenshot_default(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("BROWSERLESS_URL", "https://proxy.example.com/render")
        upstream = Settings().upstream
        assert upstream.content_url == "https://proxy.example.com/render"
        assert upstream.screenshot_url == UpstreamSettings().screenshot_url

    def test_empty_value_is_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORT", "")
        assert Settings().server.port == 3000

    def test_prefixed_variable_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BROWSERLESS_TOKEN", "platform-token")
        monkeypatch.setenv("RENDER_GATEWAY__UPSTREAM__TOKEN", "prefixed-token")
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("RENDER_GATEWAY__SERVER__HOST", "127.0.0.1")
        settings = Settings()
        assert settings.upstream.token == "prefixed-token"
        # Sections merge field by field across sources
        assert settings.server.host == "127.0.0.1"
        assert settings.server.port == 8080

    def test_constructor_beats_platform_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORT", "8080")
        assert Settings(server={"port": 9000}).server.port == 9000


class TestConfigValidation:
    def test_wrong_type_raises_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            Settings(server={"port": "not-a-number"})  # type: ignore[arg-type]

    def test_unknown_top_level_field_raises_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            Settings(completely_unknown_field="oops")  # type: ignore[call-arg]

    def test_unknown_nested_field_raises_validation_error(self) -> None:
        """A typo like 'ttl_second' is rejected instead of silently using the default."""
        with pytest.raises(ValidationError):
            CacheSettings(ttl_second=10)  # type: ignore[call-arg]

    def test_invalid_wait_until_rejected(self) -> None:
        with pytest.raises(ValidationError):
            UpstreamSettings(wait_until="whenever")  # type: ignore[arg-type]
