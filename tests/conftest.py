"""Shared fixtures: settings tuned for fast, deterministic tests."""

from __future__ import annotations

import pytest

from render_gateway.config import Settings

TOKEN = "test-token"

PLATFORM_ENV = (
    "BROWSERLESS_TOKEN",
    "BROWSERLESS_URL",
    "PORT",
    "RENDER_EXTERNAL_URL",
    "SELF_PING_URL",
)


@pytest.fixture(autouse=True)
def _clean_platform_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the host's deployment variables out of loaded settings."""
    for name in PLATFORM_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        upstream={
            "token": TOKEN,
            "screenshot_retries": 3,
            "screenshot_backoff_ms": 100,
        },
        cache={"ttl_seconds": 300, "max_entries": 3},
        keepalive={"enabled": False},
    )


@pytest.fixture()
def sleeps() -> list[float]:
    """Seconds passed to the screenshot client's backoff sleep, in call order."""
    return []


@pytest.fixture()
def fake_sleep(sleeps: list[float]):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep
