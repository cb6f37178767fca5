"""Options for auto-incrementing counters."""

from typing import Any

from pydantic import BaseModel, Field

from seqalloc.core.store.base import Table


class CounterOptions(BaseModel):
    """Where a counter lives and how the records it numbers are written."""

    counter_table: str = Field(..., description="Table holding counter records")
    counter_key: dict[str, Any] = Field(..., min_length=1, description="Key of this sequence's counter record")
    attribute_name: str = Field("counter", description="Counter record attribute holding the last value")
    table_name: str = Field(..., description="Table receiving the numbered records")
    table_attribute_name: str = Field(..., description="Key attribute of the numbered records")
    initial_value: int = 1
    dangerously: bool = False  # Single attempt, conflicts are raised instead of retried
    copy_item: bool = False  # Mirror the last numbered record's attributes into the counter record

    @property
    def counter(self) -> Table:
        return Table(self.counter_table, tuple(self.counter_key))

    @property
    def target(self) -> Table:
        return Table(self.table_name, (self.table_attribute_name,))
