from collections.abc import Mapping
from typing import Any

import structlog

from seqalloc.core.modules.counter.models import CounterOptions
from seqalloc.core.protocol import Capabilities, allocate
from seqalloc.core.store.base import AttributeEquals, Condition, Item, ItemNotExists, Store
from seqalloc.errors import ValidationError

logger = structlog.get_logger(__name__)


class CounterAllocator:
    """Numbers new records from a counter record kept in a separate table.

    The counter record is advanced with a conditional put first, then the
    numbered record is written unconditionally. A failure of the second write
    is not rolled back: the counter stays advanced and that value is skipped.
    """

    def __init__(self, store: Store, options: CounterOptions, max_attempts: int | None = None) -> None:
        self.store = store
        self.options = options
        self.max_attempts = max_attempts
        self._counter = options.counter
        self._target = options.target

    async def allocate(self, target_attributes: Mapping[str, Any]) -> int:
        """Reserve the next ID and create a record stamped with it."""
        attributes = dict(target_attributes)

        async def write(_: int | None, candidate: int, condition: Condition) -> None:
            await self.store.put(self._counter, self._counter_item(candidate, attributes), condition)

        next_id = await allocate(
            Capabilities(
                read_state=self.last_allocated,
                next_value=self._next_value,
                precondition=self._precondition,
                write=write,
            ),
            guarded=not self.options.dangerously,
            max_attempts=self.max_attempts,
            sequence=self._label,
        )

        await self.store.put(self._target, {**attributes, self.options.table_attribute_name: next_id})
        logger.debug("counter_item_created", sequence=self._label, table=self._target.name, id=next_id)
        return next_id

    async def last_allocated(self) -> int | None:
        """Get the last allocated value without incrementing."""
        item = await self.store.get(self._counter, self.options.counter_key)
        if item is None:
            return None
        if self.options.attribute_name not in item:
            raise ValidationError(f"Counter record {self._label} has no '{self.options.attribute_name}' attribute")
        return int(item[self.options.attribute_name])

    def _next_value(self, last: int | None) -> int:
        return self.options.initial_value if last is None else last + 1

    def _precondition(self, last: int | None) -> Condition:
        if last is None:
            return ItemNotExists()
        return AttributeEquals(self.options.attribute_name, last)

    def _counter_item(self, value: int, attributes: Item) -> Item:
        base = attributes if self.options.copy_item else {}
        return {**base, **self.options.counter_key, self.options.attribute_name: value}

    @property
    def _label(self) -> str:
        return f"{self._counter.name}:{self.options.counter_key}"
