"""Bounded LRU cache for ranked search results.

Keys combine the normalized query with a stable serialization of the
options, so option sets built in a different order share one entry. Entries
refer to one corpus snapshot; owners must call ``clear()`` whenever the
corpus is rebuilt.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable, Sequence
import logging
import time

from palette_search.domain.model import SearchOptions
from palette_search.observability.metrics import CACHE_EVICTIONS
from palette_search.search.models import CacheEntry, ScoredResult
from palette_search.search.ranking import normalize_query


logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 50
DEFAULT_TTL_SECONDS = 300.0


def make_cache_key(query: str, options: SearchOptions | None) -> str:
    return f"{normalize_query(query)}\x1f{(options if options is not None else SearchOptions()).cache_key()}"


class ResultCache:
    """Least-recently-used cache of ranked results with optional expiry.

    Args:
        max_size: Maximum number of entries kept
        ttl_seconds: Entry lifetime; 0 or None keeps entries until evicted
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl_seconds: float | None = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError(f"Cache max_size must be at least 1, got {max_size}")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds or None
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return self.ttl_seconds is not None and now - entry.created_at > self.ttl_seconds

    def get(self, query: str, options: SearchOptions | None = None) -> tuple[ScoredResult, ...] | None:
        """Return cached results, or None on a miss. Hits refresh recency."""
        key = make_cache_key(query, options)
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        now = self._clock()
        if self._is_expired(entry, now):
            del self._entries[key]
            self._misses += 1
            CACHE_EVICTIONS.labels(reason="expired").inc()
            return None

        entry.last_accessed_at = now
        self._entries.move_to_end(key)
        self._hits += 1
        return entry.value

    def set(self, query: str, options: SearchOptions | None, value: Sequence[ScoredResult]) -> None:
        key = make_cache_key(query, options)
        now = self._clock()

        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            self._purge_expired(now)
            while len(self._entries) >= self.max_size:
                evicted_key, _ = self._entries.popitem(last=False)
                self._evictions += 1
                CACHE_EVICTIONS.labels(reason="capacity").inc()
                logger.debug("Evicted least recently used cache entry %r", evicted_key)

        self._entries[key] = CacheEntry(key=key, value=tuple(value), created_at=now, last_accessed_at=now)

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            CACHE_EVICTIONS.labels(reason="expired").inc(len(expired))

    def clear(self) -> None:
        if self._entries:
            logger.debug("Clearing %d cached result sets", len(self._entries))
        self._entries.clear()

    def get_stats(self) -> dict[str, float | int]:
        lookups = self._hits + self._misses
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
            "hit_rate": self._hits / lookups if lookups else 0.0,
        }
