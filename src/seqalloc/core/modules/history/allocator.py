from collections.abc import Mapping
from typing import Any

import structlog

from seqalloc.core.modules.history.models import HistoryOptions
from seqalloc.core.protocol import Capabilities, allocate
from seqalloc.core.store.base import AttributeEquals, AttributeNotExists, Condition, Item, Store, WriteOp
from seqalloc.errors import ValidationError

logger = structlog.get_logger(__name__)


def merge_attributes(
    existing: Mapping[str, Any], attributes: Mapping[str, Any], key: Mapping[str, Any], version_attribute: str, version: int
) -> Item:
    """New record state: existing attributes, overlaid by the caller's, then key and version forced."""
    merged = dict(existing)
    merged.update(attributes)
    merged.update(key)
    merged[version_attribute] = version
    return merged


class HistoryAllocator:
    """Versions one record in place and snapshots every version.

    Each allocation bumps the record's version attribute and writes a copy of
    the updated record to the history table in the same transaction. A record
    without a version attribute counts as being at `initial_value`.
    """

    def __init__(
        self, store: Store, options: HistoryOptions, key: Mapping[str, Any], max_attempts: int | None = None
    ) -> None:
        self.store = store
        self.options = options
        self.max_attempts = max_attempts
        self._owner = options.owner
        self._history = options.history
        extra = set(key) - set(options.key_attributes)
        if extra:
            raise ValidationError(f"Unknown key attributes for table '{options.table_name}': {', '.join(sorted(extra))}")
        self.key = self._owner.key_of(key)

    async def allocate(self, attributes: Mapping[str, Any]) -> int:
        """Update the record with `attributes` under a new version and return that version."""
        attributes = dict(attributes)
        if self.options.attribute_name in attributes:
            logger.debug("version_attribute_discarded", table=self._owner.name, key=self.key)

        async def write(existing: Item | None, candidate: int, condition: Condition) -> None:
            item = merge_attributes(existing or {}, attributes, self.key, self.options.attribute_name, candidate)
            await self.store.transact_write(
                [
                    WriteOp(self._owner, item, condition),
                    WriteOp(self._history, dict(item)),
                ]
            )

        return await allocate(
            Capabilities(
                read_state=self._read,
                next_value=self._next_value,
                precondition=self._precondition,
                write=write,
            ),
            max_attempts=self.max_attempts,
            sequence=f"{self._owner.name}:{self.key}",
        )

    async def last_allocated(self) -> int | None:
        """Current version of the record, None if it has never been versioned."""
        item = await self._read()
        if item is None or self.options.attribute_name not in item:
            return None
        return int(item[self.options.attribute_name])

    async def history(self) -> list[Item]:
        """All snapshots of the record, oldest first."""
        return await self.store.query(self._history, self.key)

    async def _read(self) -> Item | None:
        return await self.store.get(self._owner, self.key)

    def _next_value(self, existing: Item | None) -> int:
        if existing is None:
            return self.options.initial_value
        version = existing.get(self.options.attribute_name)
        if version is None:
            # An unversioned record is taken to be at the initial version
            return self.options.initial_value + 1
        return int(version) + 1

    def _precondition(self, existing: Item | None) -> Condition:
        if existing is None or self.options.attribute_name not in existing:
            return AttributeNotExists(self.options.attribute_name)
        return AttributeEquals(self.options.attribute_name, existing[self.options.attribute_name])
