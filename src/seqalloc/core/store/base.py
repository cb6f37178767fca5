"""Store contract consumed by the allocators.

The store offers strongly consistent point reads, single-item conditional
puts and all-or-nothing multi-item transactions. Backends translate their
native failures into the errors from `seqalloc.errors`.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from seqalloc.errors import ValidationError

type Item = dict[str, Any]

# Key values must be hashable and usable inside a MongoDB _id
KEY_VALUE_TYPES = (str, int, float, bytes)


@dataclass(frozen=True)
class Table:
    """A named table and its ordered key attributes."""

    name: str
    key: tuple[str, ...]

    def key_of(self, item: Mapping[str, Any]) -> Item:
        """Extract the key attributes of an item, in table order."""
        missing = [name for name in self.key if name not in item]
        if missing:
            raise ValidationError(f"Item for table '{self.name}' is missing key attributes: {', '.join(missing)}")
        invalid = [name for name in self.key if not isinstance(item[name], KEY_VALUE_TYPES)]
        if invalid:
            raise ValidationError(f"Key attributes of table '{self.name}' must be scalars: {', '.join(invalid)}")
        return {name: item[name] for name in self.key}


@dataclass(frozen=True)
class ItemNotExists:
    """The item must not exist."""


@dataclass(frozen=True)
class AttributeEquals:
    """The item must exist and `name` must equal `value`."""

    name: str
    value: Any


@dataclass(frozen=True)
class AttributeNotExists:
    """The attribute must be absent. Satisfied by a missing item too."""

    name: str


type Condition = ItemNotExists | AttributeEquals | AttributeNotExists


def check_condition(condition: Condition | None, current: Mapping[str, Any] | None) -> bool:
    """Evaluate a condition against the currently stored item (None when absent)."""
    match condition:
        case None:
            return True
        case ItemNotExists():
            return current is None
        case AttributeEquals(name=name, value=value):
            return current is not None and name in current and current[name] == value
        case AttributeNotExists(name=name):
            return current is None or name not in current
    raise TypeError(f"Unsupported condition: {condition!r}")


@dataclass(frozen=True)
class WriteOp:
    """A put within a transaction, with an optional condition."""

    table: Table
    item: Item
    condition: Condition | None = None


class Store(Protocol):
    """Key-value store with conditional writes."""

    async def on_start(self, tables: Sequence[Table]) -> None:
        """Prepare the backend for the given tables."""
        ...

    async def on_stop(self) -> None:
        """Release backend resources."""
        ...

    async def get(self, table: Table, key: Mapping[str, Any]) -> Item | None:
        """Strongly consistent read. Returns None when the item is absent."""
        ...

    async def put(self, table: Table, item: Item, condition: Condition | None = None) -> None:
        """Write an item, replacing any existing one.

        Raises:
            ConflictError: The condition does not hold for the stored item.
            CapacityError: The item exceeds the backend's size limit.
            InfrastructureError: Any other backend failure.
        """
        ...

    async def transact_write(self, ops: Sequence[WriteOp]) -> None:
        """Apply all puts or none.

        Raises the same errors as `put`; on failure nothing is written.
        """
        ...

    async def query(self, table: Table, key_prefix: Mapping[str, Any]) -> list[Item]:
        """Items whose attributes match `key_prefix`, ordered by the table key."""
        ...
