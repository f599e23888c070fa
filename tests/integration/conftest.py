"""Integration test fixtures.

Provides a fully wired AppState (real cache, gateway and clients) and an
ASGI client driving the FastAPI app. Upstream HTTP is mocked with respx; the
ASGI transport itself is not intercepted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from render_gateway.cache import RenderCache
from render_gateway.gateway import RenderGateway
from render_gateway.server import create_app
from render_gateway.state import AppState
from render_gateway.upstream import MarkupClient, ScreenshotClient

if TYPE_CHECKING:
    from render_gateway.config import Settings


@pytest.fixture()
async def app_state(settings: Settings, fake_sleep) -> AppState:
    """Full AppState wired the way the lifespan does it, minus keep-alive."""
    async with httpx.AsyncClient() as client:
        cache = RenderCache(settings.cache.ttl_seconds, settings.cache.max_entries)
        gateway = RenderGateway(
            cache=cache,
            markup_client=MarkupClient(client, settings.upstream),
            screenshot_client=ScreenshotClient(client, settings.upstream, sleep=fake_sleep),
            http_client=client,
            stylesheet_settings=settings.stylesheets,
        )
        yield AppState(settings=settings, http_client=client, cache=cache, gateway=gateway)


@pytest.fixture()
async def api(app_state: AppState):
    app = create_app(state=app_state)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://gateway.test") as client:
        yield client
