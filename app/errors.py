from __future__ import annotations

from typing import Any, Optional


class BreedingError(Exception):
    """Base class for breeding engine errors."""


class ValidationError(BreedingError, ValueError):
    pass


class NotFoundError(BreedingError, LookupError):
    pass


class ConflictError(BreedingError):
    """The operation clashes with the record's current state."""


class TransitionError(ConflictError):
    def __init__(self, cow_id: Any, state: str, action: str):
        self.cow_id = cow_id
        self.state = state
        self.action = action
        super().__init__(f"Cannot {action} cow {cow_id} in state {state}.")


class CycleGuardError(ConflictError):
    def __init__(self, cow_id: Any, blocking_record: Optional[Any] = None):
        self.cow_id = cow_id
        self.blocking_record = blocking_record
        super().__init__(
            "Cannot add new AI record. Please complete PD for the previous AI record first."
        )
