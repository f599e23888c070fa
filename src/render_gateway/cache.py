"""In-memory render cache with TTL expiry and FIFO eviction.

Entries live in an insertion-ordered dict guarded by one ``asyncio.Lock``, so
a ``get`` on one request never observes another request's half-finished
purge/evict/insert. Nothing survives a restart.

Eviction is by insertion order only: reading an entry does not refresh it.
Concurrent misses for the same key are not coalesced; both tasks call
upstream and the second ``put`` wins.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from render_gateway.models.cache import CacheEntry

if TYPE_CHECKING:
    from render_gateway.models.fetch import FetchResult

log = structlog.get_logger()


def cache_key(url: str) -> str:
    """Target urls are only trimmed: no scheme, host or query canonicalization."""
    return url.strip()


class RenderCache:
    """Bounded, time-expiring store of ``FetchResult`` keyed by target url."""

    def __init__(self, ttl_seconds: int, max_entries: int) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0 and self.max_entries > 0

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    async def get(self, url: str) -> FetchResult | None:
        """Return the cached result for ``url``, or ``None`` if absent or expired.

        Expired entries are purged store-wide as a side effect.
        """
        key = cache_key(url)
        async with self._lock:
            self._purge_expired(datetime.now(UTC))
            entry = self._entries.get(key)
            if entry is None:
                return None
            return entry.value

    async def put(self, url: str, value: FetchResult) -> None:
        """Insert ``value`` for ``url``. No-op when the cache is disabled."""
        if not self.enabled:
            return

        key = cache_key(url)
        async with self._lock:
            now = datetime.now(UTC)
            self._purge_expired(now)

            # Replacing a key frees its own slot and moves it to the newest position
            self._entries.pop(key, None)

            if len(self._entries) >= self.max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                log.info("cache_evicted", key=evicted_key, max_entries=self.max_entries)

            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                stored_at=now,
                expires_at=now + timedelta(seconds=self.ttl_seconds),
            )
            log.debug("cache_stored", key=key, size=len(self._entries))

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def purge_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        async with self._lock:
            return self._purge_expired(datetime.now(UTC))

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def _purge_expired(self, now: datetime) -> int:
        # Caller must hold self._lock
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            log.debug("cache_purged", removed=len(expired), size=len(self._entries))
        return len(expired)
