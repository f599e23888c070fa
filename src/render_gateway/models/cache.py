from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from render_gateway.models.fetch import FetchResult


class CacheEntry(BaseModel):
    """In-memory cache slot for one target address."""

    key: str  # Trimmed target url
    value: FetchResult
    stored_at: datetime
    expires_at: datetime
