"""Tests for the allocation loop, independent of any record shape."""

import pytest

from seqalloc.core.protocol import Capabilities, allocate
from seqalloc.core.store.base import AttributeEquals, Condition
from seqalloc.errors import CapacityError, ConflictError, RetriesExhaustedError


class FakeSequence:
    """A sequence whose writes conflict a fixed number of times before succeeding."""

    def __init__(self, value: int = 0, conflicts: int = 0, error: Exception | None = None) -> None:
        self.value = value
        self.conflicts = conflicts
        self.error = error
        self.reads = 0
        self.writes: list[tuple[int, int, Condition]] = []

    async def read(self) -> int:
        self.reads += 1
        return self.value

    async def write(self, state: int, candidate: int, condition: Condition) -> None:
        self.writes.append((state, candidate, condition))
        if self.error is not None:
            raise self.error
        if self.conflicts:
            self.conflicts -= 1
            # Another writer got there first
            self.value += 1
            raise ConflictError
        self.value = candidate

    def capabilities(self) -> Capabilities[int]:
        return Capabilities(
            read_state=self.read,
            next_value=lambda state: state + 1,
            precondition=lambda state: AttributeEquals("counter", state),
            write=self.write,
        )


class TestGuarded:
    """Tests for guarded allocation."""

    @pytest.mark.asyncio
    async def test_first_attempt_success(self):
        """Test that an uncontended allocation takes a single attempt."""
        sequence = FakeSequence(value=4)
        assert await allocate(sequence.capabilities()) == 5
        assert sequence.reads == 1
        assert sequence.writes == [(4, 5, AttributeEquals("counter", 4))]

    @pytest.mark.asyncio
    async def test_retries_from_fresh_read_after_conflict(self):
        """Test that each retry re-reads the state and derives a new candidate."""
        sequence = FakeSequence(value=0, conflicts=3)
        assert await allocate(sequence.capabilities()) == 4
        assert sequence.reads == 4
        assert [candidate for _, candidate, _ in sequence.writes] == [1, 2, 3, 4]
        assert [condition for _, _, condition in sequence.writes][-1] == AttributeEquals("counter", 3)

    @pytest.mark.asyncio
    async def test_max_attempts_exhausted(self):
        """Test that a bounded allocation stops after max_attempts conflicts."""
        sequence = FakeSequence(conflicts=10)
        with pytest.raises(RetriesExhaustedError) as exc_info:
            await allocate(sequence.capabilities(), max_attempts=3, sequence="widgets")
        assert isinstance(exc_info.value.__cause__, ConflictError)
        assert len(sequence.writes) == 3

    @pytest.mark.asyncio
    async def test_max_attempts_not_reached(self):
        """Test that conflicts below the bound are still retried."""
        sequence = FakeSequence(conflicts=2)
        assert await allocate(sequence.capabilities(), max_attempts=3) == 3

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self):
        """Test that non-conflict errors propagate after one attempt."""
        error = CapacityError("too large")
        sequence = FakeSequence(error=error)
        with pytest.raises(CapacityError) as exc_info:
            await allocate(sequence.capabilities())
        assert exc_info.value is error
        assert len(sequence.writes) == 1


class TestUnguarded:
    """Tests for unguarded allocation."""

    @pytest.mark.asyncio
    async def test_success(self):
        """Test that an uncontended unguarded allocation succeeds."""
        sequence = FakeSequence(value=1)
        assert await allocate(sequence.capabilities(), guarded=False) == 2

    @pytest.mark.asyncio
    async def test_conflict_raised_without_retry(self):
        """Test that the first conflict is raised as-is."""
        sequence = FakeSequence(conflicts=1)
        with pytest.raises(ConflictError):
            await allocate(sequence.capabilities(), guarded=False)
        assert sequence.reads == 1
        assert len(sequence.writes) == 1
