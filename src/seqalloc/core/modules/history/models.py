"""Options for versioned records with an append-only history."""

from typing import Self

from pydantic import BaseModel, Field, model_validator

from seqalloc.core.store.base import Table


class HistoryOptions(BaseModel):
    """Owner table, its version attribute, and the table receiving snapshots."""

    table_name: str = Field(..., description="Table holding the live versioned records")
    key_attributes: list[str] = Field(..., min_length=1, description="Key attributes of the live records")
    attribute_name: str = Field("version", description="Version attribute, owned by the allocator")
    history_table_name: str = Field(..., description="Table receiving one snapshot per version")
    initial_value: int = 1

    @model_validator(mode="after")
    def check_version_not_in_key(self) -> Self:
        if self.attribute_name in self.key_attributes:
            raise ValueError(f"Version attribute '{self.attribute_name}' cannot be a key attribute")
        return self

    @property
    def owner(self) -> Table:
        return Table(self.table_name, tuple(self.key_attributes))

    @property
    def history(self) -> Table:
        # Snapshots are keyed by the owner key plus the version
        return Table(self.history_table_name, (*self.key_attributes, self.attribute_name))
