"""Fetch orchestration: cache lookup, upstream calls, post-processing, shaping.

Per request::

    cache lookup -- hit --------------------------------------------> shape
                 \\- miss -> markup || screenshot -> inline css -> store -> shape

The screenshot branch is best-effort: its failure becomes a warning stored
alongside the markup and is replayed from cache until the entry expires.
Markup failures (including an empty document) fail the request and are never
cached.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from render_gateway.errors import EmptyBodyError, GatewayError
from render_gateway.markup import inline_stylesheets, is_html, resolve_content_type
from render_gateway.models.fetch import FetchOutput, FetchResult, MarkupOutput, Screenshot
from render_gateway.upstream import MarkupClient, ScreenshotClient

if TYPE_CHECKING:
    import httpx

    from render_gateway.cache import RenderCache
    from render_gateway.config import Settings, StylesheetSettings
    from render_gateway.upstream import MarkupResponse

log = structlog.get_logger()

JSON_FORMAT = "json"


@dataclass(frozen=True)
class ScreenshotOutcome:
    """Either a capture or the reason there is none."""

    screenshot: Screenshot | None = None
    warning: str | None = None


class RenderGateway:
    def __init__(
        self,
        cache: RenderCache,
        markup_client: MarkupClient,
        screenshot_client: ScreenshotClient,
        http_client: httpx.AsyncClient,
        stylesheet_settings: StylesheetSettings,
    ) -> None:
        self.cache = cache
        self._markup = markup_client
        self._screenshot = screenshot_client
        self._http_client = http_client
        self._stylesheet_settings = stylesheet_settings

    async def fetch(self, url: str, output_format: str = "html") -> FetchOutput | MarkupOutput:
        """Render ``url`` (or replay it from cache) and shape the response.

        ``output_format == "json"`` returns the structured payload; any other
        value returns the raw markup with its resolved content type.
        """
        url = url.strip()
        result, cached = await self.render(url)

        if output_format.strip().lower() == JSON_FORMAT:
            screenshot = result.screenshot
            return FetchOutput(
                url=url,
                html=result.html,
                content_type=result.html_content_type,
                screenshot_base64=screenshot.image_base64 if screenshot else None,
                screenshot_content_type=screenshot.content_type if screenshot else None,
                screenshot_warning=result.screenshot_warning,
                cached=cached,
            )
        return MarkupOutput(html=result.html, content_type=result.html_content_type)

    async def render(self, url: str) -> tuple[FetchResult, bool]:
        """Return ``(result, cached)``. Raises ``GatewayError`` on markup failure."""
        url = url.strip()

        hit = await self.cache.get(url)
        if hit is not None:
            log.info("cache_hit", url=url)
            return hit, True

        log.info("cache_miss", url=url)
        markup_result, shot = await asyncio.gather(
            self._markup.fetch(url),
            self._capture(url),
            return_exceptions=True,
        )
        if isinstance(markup_result, BaseException):
            raise markup_result
        if isinstance(shot, BaseException):
            # _capture returns every failure as a warning; only cancellation lands here
            raise shot

        markup: MarkupResponse = markup_result
        if not markup.body.strip():
            log.error("upstream_markup_empty_after_retry", url=url)
            raise EmptyBodyError(url)

        content_type = resolve_content_type(markup.content_type, markup.body)
        html = await self._post_process(markup.body, url, content_type)

        result = FetchResult(
            html=html,
            html_content_type=content_type,
            screenshot=shot.screenshot,
            screenshot_warning=shot.warning,
        )
        await self._store(url, result)
        return result, False

    async def _capture(self, url: str) -> ScreenshotOutcome:
        try:
            screenshot = await self._screenshot.fetch(url)
        except GatewayError as exc:
            log.warning("screenshot_failed", url=url, code=exc.code, error=exc.message)
            return ScreenshotOutcome(warning=exc.message)
        except Exception as exc:
            log.warning("screenshot_failed", url=url, exc_info=True)
            return ScreenshotOutcome(warning=str(exc) or type(exc).__name__)
        return ScreenshotOutcome(screenshot=screenshot)

    async def _post_process(self, body: str, url: str, content_type: str) -> str:
        if not is_html(content_type):
            return body
        try:
            return await inline_stylesheets(
                body, url, content_type, self._http_client, self._stylesheet_settings
            )
        except Exception:
            log.warning("post_process_failed", url=url, exc_info=True)
            return body

    async def _store(self, url: str, result: FetchResult) -> None:
        try:
            await self.cache.put(url, result)
        except Exception:
            log.warning("cache_write_error", url=url, exc_info=True)


def build_gateway(
    settings: Settings, client: httpx.AsyncClient, cache: RenderCache
) -> RenderGateway:
    return RenderGateway(
        cache=cache,
        markup_client=MarkupClient(client, settings.upstream),
        screenshot_client=ScreenshotClient(client, settings.upstream),
        http_client=client,
        stylesheet_settings=settings.stylesheets,
    )
