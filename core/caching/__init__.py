"""
Ledgerline Core Caching — TTL Cache with Tag Invalidation
============================================================
Fast read access for CRUD list and detail views.

The cache is disposable: every entry is rebuildable from the database.
Commands invalidate by tag after they mutate (see core.caching.crud).
Time is injectable; callers that pass no `now` get the UTC clock.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import RLock
from typing import Any, Dict, Iterable, Optional, Set


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ══════════════════════════════════════════════════════════════
# CACHE ENTRY
# ══════════════════════════════════════════════════════════════

@dataclass
class CacheEntry:
    """A single cached value with TTL metadata."""

    key: str
    value: Any
    created_at: datetime
    expires_at: datetime
    tenant_id: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


# ══════════════════════════════════════════════════════════════
# CACHE STATISTICS
# ══════════════════════════════════════════════════════════════

@dataclass
class CacheStats:
    """Cache performance statistics."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    invalidations: int = 0
    total_entries: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "invalidations": self.invalidations,
            "total_entries": self.total_entries,
            "hit_rate": round(self.hit_rate, 4),
        }


# ══════════════════════════════════════════════════════════════
# TTL CACHE (LRU + TTL + tag invalidation)
# ══════════════════════════════════════════════════════════════

class TTLCache:
    """
    In-memory LRU cache with TTL expiration and tag-based invalidation.

    Features:
    - TTL-based expiration (configurable per entry or global default)
    - LRU eviction when max_size exceeded
    - Invalidation by tag (record / collection / alias tags)
    - Tenant-scoped entries for whole-tenant flushes
    - Performance statistics

    Shared across requests, so every public method holds the lock.
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl_seconds: int = 300,
    ) -> None:
        self._max_size = max_size
        self._default_ttl = timedelta(seconds=default_ttl_seconds)
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._tags: Dict[str, Set[str]] = {}  # tag → set of cache keys
        self._stats = CacheStats()
        self._lock = RLock()

    def get(self, key: str, now: Optional[datetime] = None) -> Optional[Any]:
        """
        Get a cached value by key.

        Returns None on miss or expired entry.
        """
        now = now or _utcnow()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
                return None

            if entry.is_expired(now):
                self._evict(key)
                self._stats.misses += 1
                return None

            # LRU: move to end
            self._entries.move_to_end(key)
            self._stats.hits += 1
            return entry.value

    def put(
        self,
        key: str,
        value: Any,
        now: Optional[datetime] = None,
        ttl_seconds: Optional[int] = None,
        tenant_id: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> None:
        """
        Store a value in the cache.

        Args:
            key: Cache key.
            value: Value to cache.
            now: Current time (defaults to the UTC clock).
            ttl_seconds: Override TTL for this entry.
            tenant_id: Tenant scope for this entry.
            tags: Invalidation tags that should clear this entry.
        """
        now = now or _utcnow()
        ttl = timedelta(seconds=ttl_seconds) if ttl_seconds else self._default_ttl

        with self._lock:
            # Evict if at capacity (before adding)
            if key not in self._entries and len(self._entries) >= self._max_size:
                self._evict_lru()

            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                created_at=now,
                expires_at=now + ttl,
                tenant_id=tenant_id,
            )
            self._entries.move_to_end(key)
            self._stats.total_entries = len(self._entries)

            for tag in tags or ():
                self._tags.setdefault(tag, set()).add(key)

    def invalidate_by_tag(self, tag: str) -> int:
        """
        Invalidate all cache entries associated with a tag.

        Returns number of entries invalidated.
        """
        with self._lock:
            keys = self._tags.pop(tag, set())
            count = 0
            for key in keys:
                if key in self._entries:
                    self._evict(key)
                    count += 1
            self._stats.invalidations += count
            return count

    def invalidate_tags(self, tags: Iterable[str]) -> int:
        with self._lock:
            return sum(self.invalidate_by_tag(tag) for tag in tags)

    def invalidate_by_tenant(self, tenant_id: str) -> int:
        """Invalidate all entries for a specific tenant (tenant flush)."""
        with self._lock:
            keys_to_remove = [
                k for k, v in self._entries.items()
                if v.tenant_id == tenant_id
            ]
            for key in keys_to_remove:
                self._evict(key)
            self._stats.invalidations += len(keys_to_remove)
            return len(keys_to_remove)

    def invalidate(self, key: str) -> bool:
        """Invalidate a specific cache entry."""
        with self._lock:
            if key in self._entries:
                self._evict(key)
                self._stats.invalidations += 1
                return True
            return False

    def clear(self) -> None:
        """Clear all cache entries."""
        with self._lock:
            self._entries.clear()
            self._tags.clear()
            self._stats.total_entries = 0

    def tags_for(self, key: str) -> frozenset[str]:
        with self._lock:
            return frozenset(tag for tag, keys in self._tags.items() if key in keys)

    @property
    def stats(self) -> CacheStats:
        return self._stats

    @property
    def tag_count(self) -> int:
        with self._lock:
            return len(self._tags)

    @property
    def size(self) -> int:
        return len(self._entries)

    def _evict(self, key: str) -> None:
        """Remove a single entry and clean up tags."""
        self._entries.pop(key, None)
        emptied = []
        for tag, tag_keys in self._tags.items():
            tag_keys.discard(key)
            if not tag_keys:
                emptied.append(tag)
        for tag in emptied:
            del self._tags[tag]
        self._stats.evictions += 1
        self._stats.total_entries = len(self._entries)

    def _evict_lru(self) -> None:
        """Evict the least recently used entry."""
        if self._entries:
            oldest_key = next(iter(self._entries))
            self._evict(oldest_key)
