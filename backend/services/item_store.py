"""Item persistence behind a small store interface.

Two backends:
- memory: a dict in this process (default; handy for demos and tests).
- postgres: an `items` table through an asyncpg pool.

Every write returns the invalidation tags it affects so callers know which
cached reads went stale. The store itself knows nothing about the cache.
"""

import asyncio
import itertools
import logging
from abc import ABC, abstractmethod
from typing import NamedTuple

import asyncpg

from config import settings
from errors import ItemNotFoundError
from services.keys import item_write_tags

logger = logging.getLogger(__name__)


class WriteResult(NamedTuple):
    item: dict
    tags: set[str]


class ItemStore(ABC):
    async def start(self) -> None:
        """Open connections. No-op by default."""

    async def stop(self) -> None:
        """Release connections. No-op by default."""

    async def ping(self) -> bool:
        return True

    @abstractmethod
    async def list_items(self, limit: int | None = None, offset: int = 0) -> list[dict]: ...

    @abstractmethod
    async def get_item(self, item_id: int) -> dict | None: ...

    @abstractmethod
    async def add_item(self, name: str) -> WriteResult: ...

    @abstractmethod
    async def update_item(self, item_id: int, name: str) -> WriteResult: ...

    @abstractmethod
    async def delete_item(self, item_id: int) -> WriteResult: ...


class InMemoryItemStore(ItemStore):
    def __init__(self, read_latency_ms: int = 0):
        self._items: dict[int, dict] = {}
        self._ids = itertools.count(1)
        self._read_latency = read_latency_ms / 1000

    async def _simulate_latency(self) -> None:
        if self._read_latency:
            await asyncio.sleep(self._read_latency)

    async def list_items(self, limit: int | None = None, offset: int = 0) -> list[dict]:
        await self._simulate_latency()
        items = [dict(item) for _, item in sorted(self._items.items())]
        end = None if limit is None else offset + limit
        return items[offset:end]

    async def get_item(self, item_id: int) -> dict | None:
        await self._simulate_latency()
        item = self._items.get(item_id)
        return dict(item) if item is not None else None

    async def add_item(self, name: str) -> WriteResult:
        item_id = next(self._ids)
        self._items[item_id] = {"id": item_id, "name": name}
        return WriteResult(dict(self._items[item_id]), item_write_tags(item_id))

    async def update_item(self, item_id: int, name: str) -> WriteResult:
        if item_id not in self._items:
            raise ItemNotFoundError(item_id)
        self._items[item_id]["name"] = name
        return WriteResult(dict(self._items[item_id]), item_write_tags(item_id))

    async def delete_item(self, item_id: int) -> WriteResult:
        item = self._items.pop(item_id, None)
        if item is None:
            raise ItemNotFoundError(item_id)
        return WriteResult(item, item_write_tags(item_id))


class PostgresItemStore(ItemStore):
    def __init__(self, dsn: str):
        self.dsn = dsn
        self.pool: asyncpg.Pool | None = None

    async def start(self) -> None:
        self.pool = await asyncpg.create_pool(self.dsn, min_size=1, max_size=10, command_timeout=30)
        async with self.pool.acquire() as conn:
            await conn.execute(
                "CREATE TABLE IF NOT EXISTS items (id SERIAL PRIMARY KEY, name TEXT NOT NULL)"
            )
        logger.info("PostgreSQL item store started")

    async def stop(self) -> None:
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("PostgreSQL item store stopped")

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise RuntimeError("PostgreSQL item store has not been started")
        return self.pool

    async def ping(self) -> bool:
        try:
            await self._require_pool().fetchval("SELECT 1")
            return True
        except (asyncpg.PostgresError, OSError, RuntimeError) as e:
            logger.warning("PostgreSQL ping failed: %s", e)
            return False

    async def list_items(self, limit: int | None = None, offset: int = 0) -> list[dict]:
        rows = await self._require_pool().fetch(
            "SELECT id, name FROM items ORDER BY id LIMIT $1 OFFSET $2", limit, offset
        )
        return [dict(row) for row in rows]

    async def get_item(self, item_id: int) -> dict | None:
        row = await self._require_pool().fetchrow("SELECT id, name FROM items WHERE id = $1", item_id)
        return dict(row) if row is not None else None

    async def add_item(self, name: str) -> WriteResult:
        row = await self._require_pool().fetchrow(
            "INSERT INTO items (name) VALUES ($1) RETURNING id, name", name
        )
        return WriteResult(dict(row), item_write_tags(row["id"]))

    async def update_item(self, item_id: int, name: str) -> WriteResult:
        row = await self._require_pool().fetchrow(
            "UPDATE items SET name = $2 WHERE id = $1 RETURNING id, name", item_id, name
        )
        if row is None:
            raise ItemNotFoundError(item_id)
        return WriteResult(dict(row), item_write_tags(item_id))

    async def delete_item(self, item_id: int) -> WriteResult:
        row = await self._require_pool().fetchrow(
            "DELETE FROM items WHERE id = $1 RETURNING id, name", item_id
        )
        if row is None:
            raise ItemNotFoundError(item_id)
        return WriteResult(dict(row), item_write_tags(item_id))


_store: ItemStore | None = None


def _create_store() -> ItemStore:
    if settings.store_backend == "postgres":
        return PostgresItemStore(settings.database_dsn)
    return InMemoryItemStore(read_latency_ms=settings.store_read_latency_ms)


def get_store() -> ItemStore:
    """Return the process-wide store, creating it on first call."""
    global _store
    if _store is None:
        _store = _create_store()
    return _store


def use_store(store: ItemStore | None) -> None:
    """Swap the process-wide store (None resets to the configured backend)."""
    global _store
    _store = store
