from abc import ABC


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """


class NotFoundError(UserError):
    """Raised when a requested sequence or history is not configured."""

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message)


class ValidationError(UserError):
    """Raised when keys or attributes fail validation."""


class AllocationError(Exception):
    """Base class for failures raised by the store or the allocation loop."""


class ConflictError(AllocationError):
    """A conditional write lost the race: the stored state changed since it was read."""

    def __init__(self, message: str = "Conditional check failed") -> None:
        super().__init__(message)


class CapacityError(AllocationError):
    """An item exceeds the store's size limit. Never retried."""


class InfrastructureError(AllocationError):
    """Any other store failure (connectivity, throttling). Never retried."""


class RetriesExhaustedError(AllocationError):
    """Raised when a bounded guarded allocation runs out of attempts."""
