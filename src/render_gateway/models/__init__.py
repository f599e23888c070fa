from __future__ import annotations

from render_gateway.models.cache import CacheEntry
from render_gateway.models.fetch import FetchOutput, FetchResult, MarkupOutput, Screenshot
from render_gateway.models.requests import FetchInput, parse_fetch_body

__all__ = [
    # cache
    "CacheEntry",
    # fetch
    "FetchResult",
    "Screenshot",
    "FetchOutput",
    "MarkupOutput",
    # requests
    "FetchInput",
    "parse_fetch_body",
]
