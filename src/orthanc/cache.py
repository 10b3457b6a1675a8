"""In-memory cache for query results.

Entries expire after a fixed TTL and the cache holds at most ``max_size``
results. Keys combine the user id, the query text and a canonical JSON form
of the query options, so every user's entries can be invalidated together
after a write.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from .config import CacheConfig

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str, str]


@dataclass(slots=True)
class CacheEntry:
    value: Any
    expires_at: float


def _canonical_options(options: BaseModel | Mapping[str, Any] | None) -> str:
    """Serialize query options so equal option sets produce equal keys."""
    if options is None:
        return ""
    if isinstance(options, BaseModel):
        options = options.model_dump(mode="json", exclude_none=True)
    return json.dumps(options, sort_keys=True, separators=(",", ":"), default=str)


class QueryCache:
    """TTL and capacity bounded cache of query results.

    Eviction is approximate: when the cache is full, one pass drops every
    expired entry and then, if still full, the entry closest to expiry.

    Example:
        ```python
        cache = QueryCache(CacheConfig(enabled=True, ttl_seconds=30))
        cache.set("user_1", "coffee", response)
        cache.get("user_1", "coffee")  # response, until 30s have passed
        cache.invalidate("user_1")
        ```
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            config: TTL and capacity settings.
            clock: Returns the current time in seconds. Injectable for tests.
        """
        config = config or CacheConfig(enabled=True)
        self._ttl = config.ttl_seconds
        self._max_size = config.max_size
        self._clock = clock
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    @staticmethod
    def _key(
        user_id: str, query: str, options: BaseModel | Mapping[str, Any] | None
    ) -> CacheKey:
        return (user_id, query, _canonical_options(options))

    def get(
        self,
        user_id: str,
        query: str,
        options: BaseModel | Mapping[str, Any] | None = None,
    ) -> Any | None:
        """Return the cached value, or None on a miss or expired entry."""
        key = self._key(user_id, query, options)
        entry = self._entries.get(key)

        if entry is None:
            self._misses += 1
            return None

        if self._clock() > entry.expires_at:
            del self._entries[key]
            self._misses += 1
            return None

        self._hits += 1
        return entry.value

    def set(
        self,
        user_id: str,
        query: str,
        value: Any,
        options: BaseModel | Mapping[str, Any] | None = None,
    ) -> None:
        """Store a value, replacing any previous entry for the same key."""
        if len(self._entries) >= self._max_size:
            self._evict()

        key = self._key(user_id, query, options)
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + self._ttl)

    def invalidate(self, user_id: str) -> int:
        """Drop every entry belonging to a user.

        Returns:
            Number of entries removed.
        """
        stale = [key for key in self._entries if key[0] == user_id]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("Invalidated %d cached queries for user %s", len(stale), user_id)
        return len(stale)

    def clear(self) -> None:
        """Drop all entries. Hit/miss statistics are preserved."""
        self._entries.clear()

    def _evict(self) -> None:
        now = self._clock()
        soonest_key: CacheKey | None = None
        soonest_expiry = float("inf")

        for key, entry in list(self._entries.items()):
            if entry.expires_at < now:
                del self._entries[key]
            elif entry.expires_at < soonest_expiry:
                soonest_expiry = entry.expires_at
                soonest_key = key

        if soonest_key is not None and len(self._entries) >= self._max_size:
            del self._entries[soonest_key]
            logger.debug("Evicted cache entry closest to expiry (size=%d)", len(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    @property
    def hit_rate(self) -> float:
        total = self._hits + self._misses
        if total == 0:
            return 0.0
        return self._hits / total

    @property
    def stats(self) -> dict[str, int | float]:
        """Get cache statistics: hits, misses, size, max_size and hit_rate."""
        return {
            "hits": self._hits,
            "misses": self._misses,
            "size": len(self._entries),
            "max_size": self._max_size,
            "hit_rate": self.hit_rate,
        }
