"""Shared pytest fixtures."""

import pytest

from seqalloc.core.modules.counter.models import CounterOptions
from seqalloc.core.modules.history.models import HistoryOptions
from seqalloc.core.store.memory import MemoryStore


@pytest.fixture
def store():
    """Provide a clean in-memory store for each test."""
    return MemoryStore()


@pytest.fixture
def counter_options():
    """Counter for widgets, stored in the autoincrement table."""
    return CounterOptions(
        counter_table="autoincrement",
        counter_key={"tableName": "widgets"},
        attribute_name="counter",
        table_name="widgets",
        table_attribute_name="widgetID",
        initial_value=1,
    )


@pytest.fixture
def history_options():
    """Versioned widgets with snapshots in widgetHistory."""
    return HistoryOptions(
        table_name="widgets",
        key_attributes=["widgetID"],
        attribute_name="version",
        history_table_name="widgetHistory",
        initial_value=1,
    )
