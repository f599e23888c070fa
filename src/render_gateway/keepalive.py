"""Periodic self-ping.

Free-tier hosts put idle services to sleep; hitting our own ``/health`` every
few minutes keeps the process (and its in-memory cache) warm.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import structlog

if TYPE_CHECKING:
    from render_gateway.config import Settings

log = structlog.get_logger()


def resolve_ping_url(settings: Settings) -> str:
    """Explicit keep-alive url, else the public url's /health, else localhost."""
    if settings.keepalive.url:
        return settings.keepalive.url
    if settings.server.public_url:
        return f"{settings.server.public_url.rstrip('/')}/health"
    return f"http://127.0.0.1:{settings.server.port}/health"


async def ping_once(client: httpx.AsyncClient, url: str) -> bool:
    """Ping ``url``. Failures are logged, never raised."""
    try:
        response = await client.get(url)
    except httpx.HTTPError as exc:
        log.error("self_ping_error", url=url, error=str(exc))
        return False
    if not response.is_success:
        log.error(
            "self_ping_failed",
            url=url,
            status=response.status_code,
            reason=response.reason_phrase,
        )
        return False
    return True


async def run_keepalive(client: httpx.AsyncClient, url: str, interval_seconds: float) -> None:
    """Ping immediately, then every ``interval_seconds`` until cancelled."""
    log.info("self_ping_started", url=url, interval_seconds=interval_seconds)
    while True:
        await ping_once(client, url)
        await asyncio.sleep(interval_seconds)
