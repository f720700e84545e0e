"""In-memory response cache with tag-based invalidation. No Redis needed.

Note: Each uvicorn worker (and each load-balanced instance) has its own
cache. A write handled by one worker only invalidates that worker's
entries; the others serve their copy until its TTL runs out.

Writes never populate the cache. A handler snapshots tag versions with
tag_versions() before reading the store and passes the snapshot to put();
if any of those tags was invalidated in between, the payload is dropped.
"""

import copy
import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any

from config import settings
from errors import CacheInternalError, InvalidKeyError
from services.cache_table import CacheEntry, CacheEntryTable

logger = logging.getLogger(__name__)


def _check_key(key: Any) -> str:
    if not isinstance(key, str) or not key:
        raise InvalidKeyError(f"Cache key must be a non-empty string, got {key!r}")
    return key


class CacheManager:
    def __init__(
        self,
        max_entries: int = 1000,
        default_ttl: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._table = CacheEntryTable(max_entries)
        self._default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.Lock()
        # Monotonic per-tag counters; survive clear() so in-flight reads stay rejected
        self._tag_versions: dict[str, int] = {}
        self._stats = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
            "expirations": 0,
            "invalidations": 0,
            "rejected_puts": 0,
            "errors": 0,
        }

    def tag_versions(self, tags: Iterable[str]) -> dict[str, int]:
        """Snapshot the current version of each tag, taken before a store read."""
        with self._lock:
            return {tag: self._tag_versions.get(tag, 0) for tag in tags}

    def get(self, key: str) -> CacheEntry | None:
        """Return a fresh entry for key, or None on a miss."""
        _check_key(key)
        with self._lock:
            try:
                entry = self._lookup(key)
            except Exception:
                self._stats["errors"] += 1
                logger.exception("Cache lookup failed for %s; treating as miss", key)
                entry = None

            if entry is None:
                self._stats["misses"] += 1
                return None
            self._stats["hits"] += 1

        # Stored payloads are never mutated in place; copy outside the lock
        return replace(entry, payload=copy.deepcopy(entry.payload), tag_versions=dict(entry.tag_versions))

    def put(
        self,
        key: str,
        payload: Any,
        tags: Iterable[str] = (),
        ttl: float | None = None,
        seen_versions: dict[str, int] | None = None,
    ) -> bool:
        """Store payload under key. Returns False if it was not stored.

        ttl=None falls back to the manager's default ttl. seen_versions is
        the tag_versions() snapshot taken before the payload was read.
        A negative ttl is logged and the payload is not stored.
        """
        _check_key(key)
        tags = frozenset(tags)
        ttl = self._default_ttl if ttl is None else ttl

        with self._lock:
            if ttl is not None and ttl < 0:
                self._stats["errors"] += 1
                logger.error("Cache put for %s has negative ttl %s; entry not stored", key, ttl)
                return False
            try:
                return self._store(key, copy.deepcopy(payload), tags, ttl, seen_versions)
            except Exception:
                self._stats["errors"] += 1
                logger.exception("Cache put failed for %s; entry not stored", key)
                self._table.remove_by_key(key)
                return False

    def invalidate(self, tag: str) -> int:
        """Forget every entry tagged with tag. Returns how many were removed."""
        with self._lock:
            self._tag_versions[tag] = self._tag_versions.get(tag, 0) + 1
            self._stats["invalidations"] += 1
            try:
                removed = self._table.remove_by_tag(tag)
            except Exception:
                self._stats["errors"] += 1
                logger.exception("Cache invalidation failed for tag %s; clearing cache", tag)
                removed_count = len(self._table)
                self._table.clear()
                return removed_count

        if removed:
            logger.debug("Invalidated %d cache entries for tag %s", len(removed), tag)
        return len(removed)

    def invalidate_many(self, tags: Iterable[str]) -> int:
        return sum(self.invalidate(tag) for tag in tags)

    def sweep_expired(self) -> int:
        with self._lock:
            try:
                expired = self._table.sweep_expired(self._clock())
            except Exception:
                self._stats["errors"] += 1
                logger.exception("Cache expiry sweep failed")
                return 0
            self._stats["expirations"] += len(expired)
        return len(expired)

    def clear(self) -> None:
        """Drop every entry. Meant for tests, not for the request path."""
        with self._lock:
            self._table.clear()

    def stats(self) -> dict:
        with self._lock:
            return {
                "entries": len(self._table),
                "max_entries": self._table.max_entries,
                **self._stats,
            }

    def _lookup(self, key: str) -> CacheEntry | None:
        now = self._clock()
        entry = self._table.peek(key)
        if entry is None:
            return None
        if entry.key != key:
            raise CacheInternalError(f"Entry stored under {key!r} claims key {entry.key!r}")
        if entry.is_expired(now):
            self._table.remove_by_key(key)
            self._stats["expirations"] += 1
            return None
        if self._is_stale(entry.tag_versions):
            self._table.remove_by_key(key)
            return None
        return self._table.lookup(key, now)

    def _store(
        self,
        key: str,
        payload: Any,
        tags: frozenset[str],
        ttl: float | None,
        seen_versions: dict[str, int] | None,
    ) -> bool:
        current = {tag: self._tag_versions.get(tag, 0) for tag in tags}
        if seen_versions is not None:
            # A tag missing from the snapshot was never observed, so it counts as stale
            if any(seen_versions.get(tag, -1) != version for tag, version in current.items()):
                self._stats["rejected_puts"] += 1
                logger.debug("Dropping cache put for %s: invalidated during read", key)
                return False

        now = self._clock()
        previous = self._table.peek(key)
        if (
            previous is not None
            and previous.payload == payload
            and previous.tags == tags
            and not previous.is_expired(now)
        ):
            previous.tag_versions = current
            self._table.touch(key)
            return True

        entry = CacheEntry(
            key=key,
            payload=payload,
            tags=tags,
            created_at=now,
            expires_at=None if ttl is None else now + ttl,
            version=1 if previous is None else previous.version + 1,
            tag_versions=current,
        )
        evicted = self._table.insert(entry)
        if evicted:
            self._stats["evictions"] += len(evicted)
            logger.debug("Evicted %d least recently used cache entries", len(evicted))
        return True

    def _is_stale(self, recorded: dict[str, int]) -> bool:
        return any(self._tag_versions.get(tag, 0) != version for tag, version in recorded.items())


def _build_cache() -> CacheManager:
    try:
        return CacheManager(
            max_entries=settings.cache_max_entries,
            default_ttl=settings.cache_default_ttl,
        )
    except CacheInternalError as e:
        logger.error("Invalid cache configuration (%s); using defaults", e)
        return CacheManager(default_ttl=settings.cache_default_ttl)


cache = _build_cache()
