"""Clients for the Browserless rendering service.

Two endpoints are used: ``/content`` returns the rendered HTML and
``/screenshot`` returns a full-page image. Both receive the same navigation
options and authenticate with a ``token`` query parameter.

Retry policies differ on purpose:
  - markup: one retry with a longer settle delay when the body is empty
  - screenshot: up to N retries with linear backoff, only on HTTP 429
"""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from render_gateway.errors import ConfigurationError, UpstreamError
from render_gateway.models.fetch import Screenshot

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from render_gateway.config import UpstreamSettings

log = structlog.get_logger()

DEFAULT_SCREENSHOT_CONTENT_TYPE = "image/png"
RATE_LIMITED = 429


@dataclass(frozen=True)
class MarkupResponse:
    body: str
    content_type: str | None


def build_http_client(settings: UpstreamSettings) -> httpx.AsyncClient:
    """Shared client for upstream, stylesheet and keep-alive requests.

    The read timeout must outlast the navigation timeout sent upstream,
    otherwise slow renders are cut off client-side.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.request_timeout_seconds, connect=10.0),
        follow_redirects=True,
    )


class _RenderServiceClient:
    def __init__(self, client: httpx.AsyncClient, settings: UpstreamSettings) -> None:
        self._client = client
        self._settings = settings

    def _render_options(self, settle_delay_ms: int) -> dict[str, Any]:
        return {
            "gotoOptions": {
                "waitUntil": self._settings.wait_until,
                "timeout": self._settings.navigation_timeout_ms,
            },
            "waitForTimeout": settle_delay_ms,
            # Return whatever rendered instead of failing on minor load errors
            "bestAttempt": True,
        }

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> httpx.Response:
        token = self._settings.token
        if not token:
            raise ConfigurationError(
                "Missing render service token (set RENDER_GATEWAY__UPSTREAM__TOKEN)."
            )
        try:
            return await self._client.post(endpoint, params={"token": token}, json=payload)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Render service unreachable: {exc}") from exc


def _failure(kind: str, response: httpx.Response) -> UpstreamError:
    details = response.text
    return UpstreamError(
        f"Render service {kind} request failed "
        f"({response.status_code} {response.reason_phrase}): {details}",
        upstream_status=response.status_code,
        body=details,
    )


class MarkupClient(_RenderServiceClient):
    """Fetches rendered HTML from the ``/content`` endpoint."""

    async def fetch(self, url: str) -> MarkupResponse:
        delay = self._settings.capture_delay_ms
        result = await self._fetch_once(url, delay)
        if result.body.strip():
            return result

        retry_delay = delay + self._settings.empty_body_retry_increment_ms
        log.warning("upstream_markup_empty", url=url, retry_delay_ms=retry_delay)
        # A second empty body is returned as is; the gateway decides it is fatal
        return await self._fetch_once(url, retry_delay)

    async def _fetch_once(self, url: str, settle_delay_ms: int) -> MarkupResponse:
        payload = {"url": url, **self._render_options(settle_delay_ms)}
        response = await self._post(self._settings.content_url, payload)
        if not response.is_success:
            raise _failure("content", response)
        return MarkupResponse(
            body=response.text,
            content_type=response.headers.get("content-type"),
        )


class ScreenshotClient(_RenderServiceClient):
    """Captures a full-page image from the ``/screenshot`` endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: UpstreamSettings,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        super().__init__(client, settings)
        self._sleep = sleep

    async def fetch(self, url: str) -> Screenshot:
        payload = {
            "url": url,
            **self._render_options(self._settings.capture_delay_ms),
            "options": {"fullPage": True, "type": self._settings.screenshot_type},
        }
        max_retries = max(self._settings.screenshot_retries, 0)

        attempt = 0
        while True:
            response = await self._post(self._settings.screenshot_url, payload)
            if response.is_success:
                return Screenshot(
                    image_base64=base64.b64encode(response.content).decode("ascii"),
                    content_type=response.headers.get("content-type")
                    or DEFAULT_SCREENSHOT_CONTENT_TYPE,
                )

            if response.status_code != RATE_LIMITED or attempt >= max_retries:
                raise _failure("screenshot", response)

            attempt += 1
            wait_ms = self._settings.screenshot_backoff_ms * attempt
            log.info(
                "upstream_screenshot_rate_limited",
                url=url,
                retry=attempt,
                max_retries=max_retries,
                wait_ms=wait_ms,
            )
            await self._sleep(wait_ms / 1000)
