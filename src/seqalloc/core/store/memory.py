"""In-memory implementation of Store for testing and single-process use.

Mimics the conditional write semantics of a real backend. Every operation
first yields to the event loop, so concurrent allocations interleave the way
they would over network I/O.
"""

import asyncio
import copy
from collections.abc import Mapping, Sequence
from typing import Any

import bson
import structlog

from seqalloc.core.store.base import Condition, Item, Table, WriteOp, check_condition
from seqalloc.errors import CapacityError, ConflictError

logger = structlog.get_logger(__name__)

# BSON document size limit of MongoDB
DEFAULT_MAX_ITEM_SIZE = 16 * 1024 * 1024


def _key_tuple(table: Table, key: Mapping[str, Any]) -> tuple[tuple[str, Any], ...]:
    # Attribute names are part of the row key, as in the _id sub-document of MongoStore
    return tuple((name, key[name]) for name in table.key)


class MemoryStore:
    """Dict-backed store with item size limits and conditional puts.

    Condition check and write run without an intervening await, which makes
    them atomic on the event loop.
    """

    def __init__(self, max_item_size: int = DEFAULT_MAX_ITEM_SIZE) -> None:
        self.max_item_size = max_item_size
        self._tables: dict[str, dict[tuple[tuple[str, Any], ...], Item]] = {}

    async def on_start(self, tables: Sequence[Table]) -> None:
        for table in tables:
            self._tables.setdefault(table.name, {})

    async def on_stop(self) -> None:
        """Nothing to release."""

    async def get(self, table: Table, key: Mapping[str, Any]) -> Item | None:
        await asyncio.sleep(0)
        item = self._rows(table).get(_key_tuple(table, table.key_of(key)))
        return copy.deepcopy(item) if item is not None else None

    async def put(self, table: Table, item: Item, condition: Condition | None = None) -> None:
        await asyncio.sleep(0)
        self._ensure_size(table, item)
        rows = self._rows(table)
        key = _key_tuple(table, table.key_of(item))
        if not check_condition(condition, rows.get(key)):
            raise ConflictError(f"Conditional check failed for {table.name} {table.key_of(item)}")
        rows[key] = copy.deepcopy(item)

    async def transact_write(self, ops: Sequence[WriteOp]) -> None:
        await asyncio.sleep(0)
        for op in ops:
            self._ensure_size(op.table, op.item)
        for op in ops:
            current = self._rows(op.table).get(_key_tuple(op.table, op.table.key_of(op.item)))
            if not check_condition(op.condition, current):
                raise ConflictError(f"Transaction cancelled: conditional check failed for {op.table.name}")
        for op in ops:
            self._rows(op.table)[_key_tuple(op.table, op.table.key_of(op.item))] = copy.deepcopy(op.item)

    async def query(self, table: Table, key_prefix: Mapping[str, Any]) -> list[Item]:
        await asyncio.sleep(0)
        matches = [
            item for item in self._rows(table).values() if all(item.get(name) == value for name, value in key_prefix.items())
        ]
        matches.sort(key=lambda item: _key_tuple(table, item))
        return copy.deepcopy(matches)

    def scan(self, table: Table) -> list[Item]:
        """Return every item of a table (useful for tests)."""
        return copy.deepcopy(list(self._rows(table).values()))

    def _rows(self, table: Table) -> dict[tuple[tuple[str, Any], ...], Item]:
        return self._tables.setdefault(table.name, {})

    def _ensure_size(self, table: Table, item: Item) -> None:
        size = len(bson.encode(item))
        if size > self.max_item_size:
            logger.debug("item_too_large", table=table.name, size=size, limit=self.max_item_size)
            raise CapacityError(f"Item size {size} exceeds the limit of {self.max_item_size} bytes for {table.name}")
