"""Error taxonomy for the correlation engine.

Validation rejections during extraction are not errors: a candidate that
fails its type rules is dropped and simply absent from results. Everything
below is surfaced to the caller. Routes map each class to an HTTP status
via ``status_code``.
"""

from __future__ import annotations


class HivemindError(Exception):
    """Base class for all errors raised by the core."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(HivemindError):
    """An operation targeted an investigation, entity or node that does not exist."""

    status_code = 404


class DanglingEdgeError(NotFoundError):
    """An edge referenced a node id absent from the investigation graph."""

    def __init__(self, investigation_id: str, missing: list[str]) -> None:
        super().__init__(
            f"Edge references unknown node(s) {', '.join(missing)} "
            f"in investigation '{investigation_id}'"
        )
        self.missing = missing


class DuplicateError(HivemindError):
    """A node or edge with the same identity already exists."""

    status_code = 409


class InvalidTransitionError(HivemindError):
    """An investigation status change is not allowed from the current status."""

    status_code = 409

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(
            f"Cannot move investigation from '{current}' to '{requested}'"
        )
        self.current = current
        self.requested = requested


class CapacityExceededError(HivemindError):
    """The entity store is full and its policy rejects new entities."""

    status_code = 507

    def __init__(self, capacity: int) -> None:
        super().__init__(f"Entity store is at capacity ({capacity} entities)")
        self.capacity = capacity


class ConfirmationRequiredError(HivemindError):
    """An irreversible operation was requested without explicit confirmation."""

    status_code = 400


class InvalidInputError(HivemindError):
    """Required fields are missing or malformed."""

    status_code = 400
