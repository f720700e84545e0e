"""Shared fixtures: a clean cache and a fresh in-memory store per test."""

import pytest

from config import settings
from services.cache import CacheManager, cache
from services.item_store import InMemoryItemStore, use_store


@pytest.fixture
def manager():
    """Standalone CacheManager, independent of the process-wide instance."""
    return CacheManager(max_entries=3)


@pytest.fixture
def store():
    """Fresh in-memory store installed as the process-wide store."""
    item_store = InMemoryItemStore()
    use_store(item_store)
    cache.clear()
    yield item_store
    use_store(None)
    cache.clear()


@pytest.fixture
def lenient_keys(monkeypatch):
    monkeypatch.setattr(settings, "cache_strict_keys", False)
