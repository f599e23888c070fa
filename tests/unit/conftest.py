"""Unit-specific fixtures (no I/O beyond respx-mocked HTTP)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from render_gateway.cache import RenderCache
from render_gateway.gateway import RenderGateway
from render_gateway.upstream import MarkupClient, ScreenshotClient

if TYPE_CHECKING:
    from render_gateway.config import Settings


@pytest.fixture()
def cache(settings: Settings) -> RenderCache:
    return RenderCache(settings.cache.ttl_seconds, settings.cache.max_entries)


@pytest.fixture()
async def http_client():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture()
def gateway(
    settings: Settings, cache: RenderCache, http_client: httpx.AsyncClient, fake_sleep
) -> RenderGateway:
    return RenderGateway(
        cache=cache,
        markup_client=MarkupClient(http_client, settings.upstream),
        screenshot_client=ScreenshotClient(http_client, settings.upstream, sleep=fake_sleep),
        http_client=http_client,
        stylesheet_settings=settings.stylesheets,
    )
