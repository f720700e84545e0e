"""Cached reads and cache-invalidating writes for items.

Read path:  fingerprint → cache hit? return it
            : snapshot tag versions → read store → cache.put → return
Write path: write store → invalidate every tag the write reports
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, NamedTuple

from config import settings
from errors import InvalidKeyError, ItemNotFoundError
from services.cache import cache
from services.item_store import get_store
from services.keys import ITEMS_ALL_TAG, fingerprint, item_tag

logger = logging.getLogger(__name__)


class CachedResult(NamedTuple):
    payload: Any
    hit: bool


def _cache_key(resource: str, *path, **query) -> str | None:
    """Fingerprint a read, or None to bypass the cache."""
    if not settings.cache_enabled:
        return None
    try:
        return fingerprint(resource, *path, **query)
    except InvalidKeyError:
        if settings.cache_strict_keys:
            raise
        logger.exception("Bad cache key for %s; bypassing cache", resource)
        return None


async def _cached_read(
    key: str | None,
    tags: set[str],
    load: Callable[[], Awaitable[Any]],
) -> CachedResult:
    if key is None:
        return CachedResult(await load(), hit=False)

    entry = cache.get(key)
    if entry is not None:
        return CachedResult(entry.payload, hit=True)

    seen = cache.tag_versions(tags)
    payload = await load()
    if payload is not None:
        cache.put(key, payload, tags, seen_versions=seen)
    return CachedResult(payload, hit=False)


async def get_items(limit: int | None = None, offset: int = 0) -> CachedResult:
    """All items, optionally paginated."""
    key = _cache_key("items", "all", limit=limit, offset=offset or None)
    return await _cached_read(
        key,
        {ITEMS_ALL_TAG},
        lambda: get_store().list_items(limit=limit, offset=offset),
    )


async def get_item(item_id: int) -> CachedResult:
    result = await _cached_read(
        _cache_key("items", item_id),
        {item_tag(item_id)},
        lambda: get_store().get_item(item_id),
    )
    if result.payload is None:
        raise ItemNotFoundError(item_id)
    return result


async def add_item(name: str) -> dict:
    result = await get_store().add_item(name)
    cache.invalidate_many(result.tags)
    logger.info("Added item %s", result.item["id"])
    return result.item


async def update_item(item_id: int, name: str) -> dict:
    result = await get_store().update_item(item_id, name)
    cache.invalidate_many(result.tags)
    return result.item


async def delete_item(item_id: int) -> dict:
    result = await get_store().delete_item(item_id)
    cache.invalidate_many(result.tags)
    logger.info("Deleted item %s", item_id)
    return result.item
