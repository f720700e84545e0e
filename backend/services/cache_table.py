"""Bounded storage for cached responses with LRU ordering and a tag index.

Not thread-safe: the CacheManager in services/cache.py owns the only
instance per process and serializes every call under its lock.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any

from errors import CacheInternalError


@dataclass
class CacheEntry:
    key: str
    payload: Any
    tags: frozenset[str]
    created_at: float
    expires_at: float | None = None
    version: int = 1
    tag_versions: dict[str, int] = field(default_factory=dict)

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class CacheEntryTable:
    def __init__(self, max_entries: int = 1000):
        if max_entries < 1:
            raise CacheInternalError(f"Cache capacity must be at least 1, got {max_entries}")
        self.max_entries = max_entries
        # Oldest (least recently used) first
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._tag_index: dict[str, set[str]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def keys(self) -> list[str]:
        return list(self._entries)

    def insert(self, entry: CacheEntry) -> list[CacheEntry]:
        """Insert or overwrite an entry; returns whatever LRU pressure evicted."""
        previous = self._entries.pop(entry.key, None)
        if previous is not None:
            self._unindex(previous)

        self._entries[entry.key] = entry
        for tag in entry.tags:
            self._tag_index.setdefault(tag, set()).add(entry.key)

        evicted = []
        while len(self._entries) > self.max_entries:
            _, oldest = self._entries.popitem(last=False)
            self._unindex(oldest)
            evicted.append(oldest)
        return evicted

    def lookup(self, key: str, now: float | None = None) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(time.time() if now is None else now):
            self.remove_by_key(key)
            return None
        self._entries.move_to_end(key)
        return entry

    def peek(self, key: str) -> CacheEntry | None:
        """Return an entry without touching its recency or checking expiry."""
        return self._entries.get(key)

    def touch(self, key: str) -> None:
        self._entries.move_to_end(key)

    def remove_by_key(self, key: str) -> CacheEntry | None:
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._unindex(entry)
        return entry

    def remove_by_tag(self, tag: str) -> list[CacheEntry]:
        keys = self._tag_index.pop(tag, set())
        removed = []
        for key in keys:
            entry = self._entries.pop(key, None)
            if entry is None:
                raise CacheInternalError(f"Tag index for {tag!r} references missing key {key!r}")
            self._unindex(entry)
            removed.append(entry)
        return removed

    def sweep_expired(self, now: float | None = None) -> list[CacheEntry]:
        now = time.time() if now is None else now
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        return [self.remove_by_key(key) for key in expired]

    def clear(self) -> None:
        self._entries.clear()
        self._tag_index.clear()

    def _unindex(self, entry: CacheEntry) -> None:
        for tag in entry.tags:
            keys = self._tag_index.get(tag)
            if keys is None:
                continue
            keys.discard(entry.key)
            if not keys:
                del self._tag_index[tag]
