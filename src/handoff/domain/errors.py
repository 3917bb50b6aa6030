"""Domain-specific exception classes for the hand-off coordinator."""

from __future__ import annotations


class HandoffError(Exception):
    """Base class for all domain errors in the hand-off coordinator."""


class InvalidTransitionError(HandoffError):
    """Raised when a status change would move a record backwards or out of a terminal state.

    Attributes:
        current_state: The state the record was in when the change was attempted.
        event: The rejected event or target state.
    """

    def __init__(self, current_state: str, event: str) -> None:
        self.current_state = current_state
        self.event = event
        super().__init__(f"Cannot apply '{event}' in state '{current_state}'")


class RecordNotFoundError(HandoffError):
    """Raised when a session, item, or notification id does not exist.

    Attributes:
        table: The table that was searched.
        record_id: The id that was not found.
    """

    def __init__(self, table: str, record_id: str | int) -> None:
        self.table = table
        self.record_id = record_id
        super().__init__(f"No {table} record with id {record_id!r}")


class StoreError(HandoffError):
    """Raised when a read or write against the verification store fails."""


class DuplicateRecordError(StoreError):
    """Raised when a write would break a uniqueness rule, such as a second pending ``la_ready``."""
