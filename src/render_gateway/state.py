from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import asyncio

    import httpx

    from render_gateway.cache import RenderCache
    from render_gateway.config import Settings
    from render_gateway.gateway import RenderGateway


@dataclass
class AppState:
    """Process-wide objects shared by every request."""

    settings: Settings
    http_client: httpx.AsyncClient
    cache: RenderCache
    gateway: RenderGateway
    keepalive_task: asyncio.Task[None] | None = None
