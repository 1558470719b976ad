"""
Research Cache: content-addressed, TTL-bound store of expensive lookups.

Entries are keyed by a hash of the normalized query text and its source
(``profile``, ``company``, ``similarity``, ``patterns``...). An entry is
valid while ``now <= expires_at``; reads after that are misses and the
caller recomputes. Expired rows stay in the store until ``sweep()``.

Writes are last-write-wins upserts. Two concurrent computations for the
same key produce the same payload, so no locking is done here.

An unreachable store never fails a lookup: a failed read is a miss and a
failed write is skipped, both with a warning. ``invalidate()`` and
``sweep()`` are explicit maintenance calls and let store errors through.

The cache never talks to a database directly. It is constructed with a
*store* handle that provides four coroutines:

- ``get_cache_entry(query_hash) -> Optional[dict]``
- ``upsert_cache_entry(row: dict) -> None``
- ``record_cache_hit(query_hash, hit_count, last_accessed_at) -> None``
- ``delete_expired_cache_entries(now) -> int``

``SupabaseDB`` implements them against the ``research_cache`` table and
``InMemoryCacheStore`` implements them for tests and local runs.

Usage::

    cache = ResearchCache(store=InMemoryCacheStore(), ttl_hours=24)
    results = await cache.get_or_compute(
        "Acme Corp", source="company", compute=lambda: fetch_company("Acme Corp"),
    )
"""

import copy
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

from engagement_engine.models import CacheEntry
from engagement_engine.utils import stable_hash, utc_now

logger = logging.getLogger("ResearchCache")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_query(text: str) -> str:
    """Lowercase, collapse every run of non-alphanumerics to one space."""
    return _NON_ALNUM.sub(" ", (text or "").lower()).strip()


def query_hash(text: str, source: str) -> str:
    """Cache key for ``text`` under ``source``.

    Queries differing only in case or punctuation share a key.
    """
    return stable_hash(source, normalize_query(text))


# =============================================================================
# IN-MEMORY STORE
# =============================================================================


class InMemoryCacheStore:
    """Dict-backed cache store. Rows are deep-copied on the way in and out."""

    def __init__(self) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {}

    async def get_cache_entry(self, key: str) -> Optional[Dict[str, Any]]:
        row = self.rows.get(key)
        return copy.deepcopy(row) if row is not None else None

    async def upsert_cache_entry(self, row: Dict[str, Any]) -> None:
        self.rows[row["query_hash"]] = copy.deepcopy(row)

    async def record_cache_hit(
        self, key: str, hit_count: int, last_accessed_at: datetime
    ) -> None:
        row = self.rows.get(key)
        if row is not None:
            row["hit_count"] = hit_count
            row["last_accessed_at"] = last_accessed_at.isoformat()

    async def delete_expired_cache_entries(self, now: datetime) -> int:
        expired = [
            key for key, row in self.rows.items()
            if CacheEntry.from_row(row).is_expired(now)
        ]
        for key in expired:
            del self.rows[key]
        return len(expired)


# =============================================================================
# RESEARCH CACHE
# =============================================================================


class ResearchCache:
    """
    TTL cache with hit accounting over an injected store.

    Args:
        store: Object implementing the four store coroutines (see module
            docstring).
        ttl_hours: Default time-to-live for new entries.
        source_ttl_hours: Per-source TTL overrides (e.g. ``{"perplexity": 12}``).
        clock: Callable returning the current aware UTC datetime.
    """

    def __init__(
        self,
        store: Any,
        ttl_hours: float = 24.0,
        source_ttl_hours: Optional[Dict[str, float]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        if ttl_hours <= 0:
            raise ValueError(f"ttl_hours must be positive, got {ttl_hours}")
        self.store = store
        self.ttl_hours = ttl_hours
        self.source_ttl_hours = dict(source_ttl_hours or {})
        self.clock = clock

    def ttl_for(self, source: str) -> timedelta:
        return timedelta(hours=self.source_ttl_hours.get(source, self.ttl_hours))

    async def get(self, query: str, source: str) -> Optional[CacheEntry]:
        """
        Return the live entry for ``query``/``source`` or ``None`` on a miss.

        A hit bumps ``hit_count`` and ``last_accessed_at`` both in the store
        and on the returned entry. Expired entries are misses and are left
        for the sweep.
        """
        key = query_hash(query, source)
        try:
            row = await self.store.get_cache_entry(key)
            entry = CacheEntry.from_row(row) if row is not None else None
        except Exception as exc:
            logger.warning("Cache read failed (%s), treating as miss: %s", source, exc)
            return None
        if entry is None:
            logger.debug("Cache miss (%s): %s", source, key[:12])
            return None

        now = self.clock()
        if entry.is_expired(now):
            logger.debug(
                "Cache expired (%s): %s expired at %s", source, key[:12], entry.expires_at
            )
            return None

        entry.hit_count += 1
        entry.last_accessed_at = now
        try:
            await self.store.record_cache_hit(key, entry.hit_count, now)
        except Exception as exc:
            logger.warning("Recording cache hit failed (%s): %s", source, exc)
        logger.debug("Cache hit (%s): %s hits=%d", source, key[:12], entry.hit_count)
        return entry

    async def put(
        self,
        query: str,
        source: str,
        results: Any,
        ttl_hours: Optional[float] = None,
    ) -> CacheEntry:
        """Store ``results`` (must be JSON-serialisable) with a fresh TTL.

        Overwrites any previous entry for the same key and resets its hit
        counter. A failed write is logged and skipped; the entry is still
        returned.
        """
        now = self.clock()
        ttl = timedelta(hours=ttl_hours) if ttl_hours is not None else self.ttl_for(source)
        entry = CacheEntry(
            query_hash=query_hash(query, source),
            query_text=query,
            results=results,
            source=source,
            expires_at=now + ttl,
            hit_count=0,
            last_accessed_at=None,
            created_at=now,
        )
        try:
            await self.store.upsert_cache_entry(entry.to_row())
        except Exception as exc:
            logger.warning("Cache write failed (%s), result not cached: %s", source, exc)
        return entry

    async def get_or_compute(
        self,
        query: str,
        source: str,
        compute: Callable[[], Awaitable[Any]],
        ttl_hours: Optional[float] = None,
    ) -> Any:
        """Return cached results or compute, store and return them.

        Nothing is written if ``compute`` raises or is cancelled.
        """
        entry = await self.get(query, source)
        if entry is not None:
            return entry.results
        results = await compute()
        await self.put(query, source, results, ttl_hours=ttl_hours)
        return results

    async def invalidate(self, query: str, source: str) -> None:
        """Force the next ``get`` for this key to miss."""
        key = query_hash(query, source)
        row = await self.store.get_cache_entry(key)
        if row is None:
            return
        row["expires_at"] = (self.clock() - timedelta(seconds=1)).isoformat()
        await self.store.upsert_cache_entry(row)

    async def sweep(self) -> int:
        """Physically delete expired entries. Returns the number removed."""
        removed = await self.store.delete_expired_cache_entries(self.clock())
        if removed:
            logger.info("Swept %d expired cache entries", removed)
        return removed


__all__ = [
    "normalize_query",
    "query_hash",
    "InMemoryCacheStore",
    "ResearchCache",
]
