"""Markup helpers: content-type resolution and stylesheet inlining.

Inlining makes a rendered page self-contained: every
``<link rel="stylesheet" href="...">`` is replaced by a ``<style>`` block with
the fetched CSS, so the page still looks right when it is stored or viewed away
from its origin.

Replacement is textual. A link tag that appears verbatim more than once is
replaced everywhere by the first successful fetch for that tag text.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import httpx
import structlog

if TYPE_CHECKING:
    from render_gateway.config import StylesheetSettings

log = structlog.get_logger()

HTML_CONTENT_TYPE = "text/html; charset=utf-8"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

_LINK_TAG = re.compile(r"<link\b[^>]*>", re.IGNORECASE)
# Attribute names must follow whitespace so data-rel / data-href are not matched
_REL_ATTR = re.compile(
    r"""(?:^|\s)rel\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+))""", re.IGNORECASE
)
_HREF_ATTR = re.compile(r"""(?:^|\s)href\s*=\s*(?:"([^"]*)"|'([^']*)')""", re.IGNORECASE)


def resolve_content_type(content_type: str | None, body: str) -> str:
    """Upstream content type if present, else sniffed from the leading markup."""
    if content_type and content_type.strip():
        return content_type
    head = body.lstrip().lower()
    if head.startswith(("<!doctype html", "<html")):
        return HTML_CONTENT_TYPE
    return TEXT_CONTENT_TYPE


def is_html(content_type: str) -> bool:
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type in ("text/html", "application/xhtml+xml")


def _first_group(match: re.Match[str] | None) -> str | None:
    if match is None:
        return None
    return next((g for g in match.groups() if g is not None), None)


def find_stylesheet_links(html: str) -> list[tuple[str, str]]:
    """Return ``(tag, href)`` pairs for stylesheet links, in document order."""
    links = []
    for match in _LINK_TAG.finditer(html):
        tag = match.group(0)
        rel = _first_group(_REL_ATTR.search(tag))
        if rel is None or "stylesheet" not in rel.lower():
            continue
        href = _first_group(_HREF_ATTR.search(tag))
        if href is None:
            continue
        links.append((tag, href))
    return links


async def _fetch_stylesheet(
    client: httpx.AsyncClient, url: str, settings: StylesheetSettings
) -> str | None:
    try:
        response = await client.get(
            url,
            headers={"User-Agent": settings.user_agent},
            timeout=settings.timeout_seconds,
        )
    except httpx.HTTPError as exc:
        log.warning("stylesheet_inline_failed", href=url, error=str(exc))
        return None
    if not response.is_success:
        log.warning("stylesheet_inline_failed", href=url, status=response.status_code)
        return None
    return response.text


async def inline_stylesheets(
    html: str,
    page_url: str,
    content_type: str,
    client: httpx.AsyncClient,
    settings: StylesheetSettings,
) -> str:
    """Replace stylesheet ``<link>`` tags with ``<style>`` blocks.

    Links whose fetch fails are left untouched. Non-HTML input is returned
    unchanged.
    """
    if not is_html(content_type):
        return html

    links = find_stylesheet_links(html)
    if not links:
        return html

    base = httpx.URL(page_url)
    inlined = 0
    for tag, href in links:
        # Already replaced through an identical earlier tag
        if tag not in html:
            continue
        try:
            absolute = str(base.join(href))
        except httpx.InvalidURL:
            log.warning("stylesheet_inline_failed", href=href, error="invalid url")
            continue

        css = await _fetch_stylesheet(client, absolute, settings)
        if css is None:
            continue
        html = html.replace(tag, f'<style data-inlined-from="{absolute}">{css}</style>')
        inlined += 1

    log.debug("stylesheets_inlined", url=page_url, found=len(links), inlined=inlined)
    return html
