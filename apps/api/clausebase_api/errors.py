"""Domain error taxonomy.

Route handlers translate these into HTTP statuses (see ``main.py``); services
raise them before mutating anything so a failed precondition never leaves
partial state behind.
"""


class ClauseBaseError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ClauseBaseError):
    """Client-correctable input problem (missing content, bad vote value)."""


class NotFound(ClauseBaseError):
    """Entity absent or not visible to the caller."""


class Forbidden(ClauseBaseError):
    """Caller is known but not allowed to perform the action."""


class InvalidState(ClauseBaseError):
    """Operation conflicts with the current state of the entity."""


class DependencyFailure(ClauseBaseError):
    """An external collaborator (content store, ledger) failed."""
