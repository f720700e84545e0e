"""
Unit tests for the cache entry table (storage, LRU ordering, tag index).
"""

import pytest

from errors import CacheInternalError
from services.cache_table import CacheEntry, CacheEntryTable


def make_entry(key, tags=(), created_at=100.0, expires_at=None, payload=None):
    return CacheEntry(
        key=key,
        payload=payload if payload is not None else {"key": key},
        tags=frozenset(tags),
        created_at=created_at,
        expires_at=expires_at,
    )


class TestCacheEntryTable:
    """Test cases for CacheEntryTable."""

    def test_insert_and_lookup(self):
        table = CacheEntryTable(max_entries=10)
        table.insert(make_entry("a"))

        entry = table.lookup("a", now=100.0)

        assert entry is not None
        assert entry.payload == {"key": "a"}
        assert "a" in table
        assert len(table) == 1

    def test_lookup_missing_key(self):
        table = CacheEntryTable(max_entries=10)
        assert table.lookup("missing", now=100.0) is None

    def test_overwrite_keeps_single_entry_and_reindexes_tags(self):
        table = CacheEntryTable(max_entries=10)
        table.insert(make_entry("a", tags={"old"}))
        table.insert(make_entry("a", tags={"new"}, payload=[2]))

        assert len(table) == 1
        assert table.remove_by_tag("old") == []
        removed = table.remove_by_tag("new")
        assert [e.payload for e in removed] == [[2]]
        assert len(table) == 0

    def test_evicts_least_recently_used(self):
        table = CacheEntryTable(max_entries=3)
        for key in ("k1", "k2", "k3"):
            table.insert(make_entry(key))

        # k1 becomes most recently used, so k2 is now the eviction candidate
        table.lookup("k1", now=100.0)
        evicted = table.insert(make_entry("k4"))

        assert [e.key for e in evicted] == ["k2"]
        assert "k1" in table
        assert "k2" not in table
        assert table.keys() == ["k3", "k1", "k4"]

    def test_eviction_cleans_tag_index(self):
        table = CacheEntryTable(max_entries=1)
        table.insert(make_entry("a", tags={"t"}))
        table.insert(make_entry("b"))

        assert table.remove_by_tag("t") == []

    def test_peek_does_not_change_recency(self):
        table = CacheEntryTable(max_entries=2)
        table.insert(make_entry("a"))
        table.insert(make_entry("b"))

        table.peek("a")
        evicted = table.insert(make_entry("c"))

        assert [e.key for e in evicted] == ["a"]

    def test_expired_entry_is_removed_on_lookup(self):
        table = CacheEntryTable(max_entries=10)
        table.insert(make_entry("a", created_at=100.0, expires_at=101.0))

        assert table.lookup("a", now=100.5) is not None
        assert table.lookup("a", now=101.0) is None
        assert "a" not in table

    def test_remove_by_tag_only_touches_tagged_entries(self):
        table = CacheEntryTable(max_entries=10)
        table.insert(make_entry("list", tags={"items:all"}))
        table.insert(make_entry("item1", tags={"item:1"}))
        table.insert(make_entry("item2", tags={"item:2", "items:all"}))

        removed = table.remove_by_tag("items:all")

        assert sorted(e.key for e in removed) == ["item2", "list"]
        assert table.keys() == ["item1"]

    def test_remove_by_key(self):
        table = CacheEntryTable(max_entries=10)
        table.insert(make_entry("a", tags={"t"}))

        assert table.remove_by_key("a").key == "a"
        assert table.remove_by_key("a") is None
        assert table.remove_by_tag("t") == []

    def test_sweep_expired(self):
        table = CacheEntryTable(max_entries=10)
        table.insert(make_entry("short", expires_at=101.0))
        table.insert(make_entry("long", expires_at=200.0))
        table.insert(make_entry("forever"))

        swept = table.sweep_expired(now=150.0)

        assert [e.key for e in swept] == ["short"]
        assert sorted(table.keys()) == ["forever", "long"]

    def test_clear(self):
        table = CacheEntryTable(max_entries=10)
        table.insert(make_entry("a", tags={"t"}))
        table.clear()

        assert len(table) == 0
        assert table.remove_by_tag("t") == []

    def test_capacity_misconfiguration(self):
        with pytest.raises(CacheInternalError):
            CacheEntryTable(max_entries=0)
