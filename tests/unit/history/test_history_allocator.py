"""Tests for HistoryAllocator."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError as PydanticValidationError

from seqalloc.core.modules.history.allocator import HistoryAllocator, merge_attributes
from seqalloc.core.modules.history.models import HistoryOptions
from seqalloc.core.store.memory import MemoryStore
from seqalloc.errors import CapacityError, ValidationError

N = 20
KEY = {"widgetID": 1}


@pytest.fixture
def allocator(store, history_options):
    return HistoryAllocator(store, history_options, KEY)


class TestMergeAttributes:
    """Tests for the record merge."""

    def test_caller_attributes_overlay_existing(self):
        merged = merge_attributes({"widgetID": 1, "name": "spoon", "color": "red"}, {"color": "blue"}, KEY, "version", 3)
        assert merged == {"widgetID": 1, "name": "spoon", "color": "blue", "version": 3}

    def test_version_and_key_forced(self):
        merged = merge_attributes({}, {"widgetID": 2, "version": 100}, KEY, "version", 1)
        assert merged == {"widgetID": 1, "version": 1}

    def test_inputs_not_mutated(self):
        existing = {"widgetID": 1, "version": 1}
        merge_attributes(existing, {"name": "spoon"}, KEY, "version", 2)
        assert existing == {"widgetID": 1, "version": 1}


class TestHistoryOptions:
    """Tests for option validation."""

    def test_version_cannot_be_key_attribute(self):
        with pytest.raises(PydanticValidationError, match="cannot be a key attribute"):
            HistoryOptions(table_name="widgets", key_attributes=["widgetID", "version"], history_table_name="widgetHistory")

    def test_history_table_keyed_by_version(self, history_options):
        assert history_options.history.key == ("widgetID", "version")


class TestConstruction:
    """Tests for key validation."""

    def test_missing_key_attribute(self, store, history_options):
        with pytest.raises(ValidationError, match="widgetID"):
            HistoryAllocator(store, history_options, {})

    def test_unknown_key_attribute(self, store, history_options):
        with pytest.raises(ValidationError, match="color"):
            HistoryAllocator(store, history_options, {"widgetID": 1, "color": "red"})


class TestAllocate:
    """Tests for versioned updates."""

    @pytest.mark.asyncio
    async def test_new_record_starts_at_initial_value(self, store, history_options, allocator):
        """Test that the first version of an absent record is the initial value."""
        assert await allocator.allocate({"name": "spoon"}) == 1

        owner = {"widgetID": 1, "name": "spoon", "version": 1}
        assert store.scan(history_options.owner) == [owner]
        assert store.scan(history_options.history) == [owner]

    @pytest.mark.asyncio
    async def test_unversioned_record_counts_as_initial_version(self, store, history_options, allocator):
        """Test that an existing record without a version is taken to be at the initial value."""
        await store.put(history_options.owner, {"widgetID": 1, "name": "spoon"})

        assert await allocator.allocate({"color": "silver"}) == 2
        assert await allocator.last_allocated() == 2
        assert store.scan(history_options.owner) == [{"widgetID": 1, "name": "spoon", "color": "silver", "version": 2}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("version", [1, 2, 3])
    async def test_versioned_record_increments(self, store, history_options, allocator, version):
        await store.put(history_options.owner, {"widgetID": 1, "version": version})
        assert await allocator.allocate({}) == version + 1

    @pytest.mark.asyncio
    async def test_history_appends_snapshot_per_version(self, store, history_options, allocator):
        """Test that each version has exactly one snapshot equal to the record at that version."""
        assert await allocator.allocate({"name": "spoon", "color": "red"}) == 1
        assert await allocator.allocate({"color": "blue"}) == 2
        assert await allocator.allocate({"size": 3}) == 3

        history = await allocator.history()
        assert history == [
            {"widgetID": 1, "name": "spoon", "color": "red", "version": 1},
            {"widgetID": 1, "name": "spoon", "color": "blue", "version": 2},
            {"widgetID": 1, "name": "spoon", "color": "blue", "size": 3, "version": 3},
        ]
        owner = await store.get(history_options.owner, KEY)
        assert owner == history[-1]

    @pytest.mark.asyncio
    async def test_supplied_version_discarded(self, store, history_options, allocator):
        """Test that the version comes from the store, not the caller."""
        await store.put(history_options.owner, {"widgetID": 1, "version": 5})

        assert await allocator.allocate({"version": 42, "name": "spoon"}) == 6
        assert (await store.get(history_options.owner, KEY))["version"] == 6
        assert [item["version"] for item in await allocator.history()] == [6]

    @pytest.mark.asyncio
    async def test_records_have_independent_histories(self, store, history_options):
        first = HistoryAllocator(store, history_options, {"widgetID": 1})
        second = HistoryAllocator(store, history_options, {"widgetID": 2})

        assert await first.allocate({}) == 1
        assert await first.allocate({}) == 2
        assert await second.allocate({}) == 1
        assert [item["version"] for item in await second.history()] == [1]

    @pytest.mark.asyncio
    async def test_parallel_allocations(self, store, history_options, allocator):
        """Test that concurrent updates get unique consecutive versions."""
        result = await asyncio.gather(*(allocator.allocate({"writer": i}) for i in range(N)))

        assert sorted(result) == list(range(1, N + 1))
        history = await allocator.history()
        assert [item["version"] for item in history] == list(range(1, N + 1))
        assert await allocator.last_allocated() == N
        # The live record matches its latest snapshot
        assert await store.get(history_options.owner, KEY) == history[-1]

    @pytest.mark.asyncio
    async def test_last_allocated_absent_record(self, allocator):
        assert await allocator.last_allocated() is None


class TestCapacity:
    """Tests for oversized records."""

    @pytest.mark.asyncio
    async def test_oversized_record_not_retried(self, history_options):
        """Test that a too-large update fails once and leaves no partial writes."""
        store = MemoryStore(max_item_size=1024)
        spy = AsyncMock(wraps=store.transact_write)
        store.transact_write = spy
        allocator = HistoryAllocator(store, history_options, KEY)

        with pytest.raises(CapacityError):
            await allocator.allocate({"blob": "x" * 2048})

        assert spy.await_count == 1
        assert store.scan(history_options.owner) == []
        assert store.scan(history_options.history) == []
