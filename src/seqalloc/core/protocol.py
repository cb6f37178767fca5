"""Optimistic allocation loop shared by the counter and history allocators.

An attempt reads the current state, derives the next value from it, and
tries a single conditional write asserting that the state is unchanged.
Only one of several racing callers can win a given value; the others see
a ConflictError. Guarded allocations re-read and try again, unguarded ones
surface the conflict.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog

from seqalloc.core.store.base import Condition
from seqalloc.errors import ConflictError, RetriesExhaustedError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Capabilities[S]:
    """How one allocator reads, derives, guards and writes its sequence.

    Attributes:
        read_state: Strongly consistent read of the current state
        next_value: Candidate value computed from the state
        precondition: Condition asserting the state is still what was read
        write: One conditional write of the candidate; raises ConflictError
            when the precondition no longer holds
    """

    read_state: Callable[[], Awaitable[S]]
    next_value: Callable[[S], int]
    precondition: Callable[[S], Condition]
    write: Callable[[S, int, Condition], Awaitable[None]]


async def allocate[S](
    capabilities: Capabilities[S],
    *,
    guarded: bool = True,
    max_attempts: int | None = None,
    sequence: str = "",
) -> int:
    """Run read-compute-write attempts until one write succeeds.

    Args:
        capabilities: The allocator's state access and write operations
        guarded: Retry on conflict. When False, a conflict is raised after the
            first attempt
        max_attempts: Upper bound on guarded attempts, None for no bound
        sequence: Label used in log events

    Returns:
        The allocated value

    Raises:
        ConflictError: Unguarded attempt lost the race
        RetriesExhaustedError: Guarded allocation hit `max_attempts`
    """
    attempt = 0
    while True:
        attempt += 1
        state = await capabilities.read_state()
        candidate = capabilities.next_value(state)
        try:
            await capabilities.write(state, candidate, capabilities.precondition(state))
        except ConflictError as e:
            if not guarded:
                logger.debug("allocation_conflict_unguarded", sequence=sequence, value=candidate)
                raise
            if max_attempts is not None and attempt >= max_attempts:
                logger.warning("allocation_retries_exhausted", sequence=sequence, attempts=attempt)
                raise RetriesExhaustedError(f"Failed to allocate from {sequence} after {attempt} attempts") from e
            logger.debug("allocation_conflict", sequence=sequence, value=candidate, attempt=attempt)
            continue

        logger.debug("allocated", sequence=sequence, value=candidate, attempts=attempt)
        return candidate
