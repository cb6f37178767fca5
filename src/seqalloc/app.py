from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from typing import Any

from seqalloc.config import Config
from seqalloc.core.core import Core
from seqalloc.core.store.base import Item, Store


class App:
    """Facade for all application operations, resolving names before delegating to Core."""

    def __init__(self, config: Config, store: Store | None = None) -> None:
        self._core = Core(config, store)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    async def allocate_id(self, sequence: str, attributes: Mapping[str, Any]) -> int:
        """Create a record numbered from a sequence and return its ID."""
        return await self._core.counter(sequence).allocate(attributes)

    async def get_last_id(self, sequence: str) -> int | None:
        """Get the last ID issued by a sequence."""
        return await self._core.counter(sequence).last_allocated()

    async def allocate_version(self, history: str, key: Mapping[str, Any], attributes: Mapping[str, Any]) -> int:
        """Update a versioned record and return its new version."""
        return await self._core.history(history, key).allocate(attributes)

    async def get_versions(self, history: str, key: Mapping[str, Any]) -> tuple[int | None, list[Item]]:
        """Get the current version of a record and all of its snapshots."""
        allocator = self._core.history(history, key)
        return await allocator.last_allocated(), await allocator.history()
