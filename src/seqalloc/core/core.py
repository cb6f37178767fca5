from __future__ import annotations

from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import urlparse

import structlog
from pymongo import AsyncMongoClient

from seqalloc.config import Config
from seqalloc.core.modules.counter.allocator import CounterAllocator
from seqalloc.core.modules.history.allocator import HistoryAllocator
from seqalloc.core.store.base import Store, Table
from seqalloc.core.store.memory import MemoryStore
from seqalloc.core.store.mongo import MongoStore
from seqalloc.errors import NotFoundError

logger = structlog.get_logger(__name__)


class Core:
    """Container providing config, the store backend, and configured allocators."""

    config: Config
    mongo_client: AsyncMongoClient[dict[str, Any]] | None
    store: Store

    def __init__(self, config: Config, store: Store | None = None) -> None:
        """Initialize core with config and the configured store backend."""
        self.config = config
        self.mongo_client = None
        if store is not None:
            self.store = store
        elif config.backend == "memory":
            self.store = MemoryStore(max_item_size=config.max_item_size)
        else:
            self.mongo_client = AsyncMongoClient(config.database_url, uuidRepresentation="standard")
            self.store = MongoStore(self.mongo_client.get_database(urlparse(config.database_url).path[1:]))
        # Counter allocators are stateless between calls, so one per sequence is shared
        self._counters = {
            name: CounterAllocator(self.store, options, max_attempts=config.max_attempts)
            for name, options in config.sequences.items()
        }

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        """Prepare the store for every configured table."""
        tables = self.tables()
        await self.store.on_start(tables)
        logger.info(
            "core_started",
            backend=type(self.store).__name__,
            sequences=sorted(self.config.sequences),
            histories=sorted(self.config.histories),
        )

    async def on_stop(self) -> None:
        """Stop the store and close MongoDB connection on shutdown."""
        await self.store.on_stop()
        if self.mongo_client is not None:
            await self.mongo_client.aclose()

    def tables(self) -> list[Table]:
        """All tables referenced by the configured sequences and histories, without duplicates."""
        tables: dict[str, Table] = {}
        for counter in self.config.sequences.values():
            tables.setdefault(counter.counter_table, counter.counter)
            tables.setdefault(counter.table_name, counter.target)
        for history in self.config.histories.values():
            tables.setdefault(history.table_name, history.owner)
            tables.setdefault(history.history_table_name, history.history)
        return list(tables.values())

    def counter(self, name: str) -> CounterAllocator:
        """Get the allocator of a configured sequence."""
        if name not in self._counters:
            raise NotFoundError(f"Sequence '{name}' not found")
        return self._counters[name]

    def history(self, name: str, key: Mapping[str, Any]) -> HistoryAllocator:
        """Build an allocator for one record of a configured history."""
        options = self.config.histories.get(name)
        if options is None:
            raise NotFoundError(f"History '{name}' not found")
        return HistoryAllocator(self.store, options, key, max_attempts=self.config.max_attempts)
