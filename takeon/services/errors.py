"""
Refusals raised by the workflow services.

These are NOT faults - they are the system working correctly. None of them
is retried; each carries a message the user can act on.
"""


class RefusalError(Exception):
    """Base class for every refused workflow action."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class InvalidTransition(RefusalError):
    """The requested status is not the single successor of the current one."""


class Unauthorized(RefusalError):
    """The caller's role may not edit this section or execute this edge."""


class PreconditionFailed(RefusalError):
    """A gate check before an irreversible action failed."""


class IncompleteTakeOnSheet(PreconditionFailed):
    """Employee creation was attempted on a sheet that is not Complete."""


class NotFound(RefusalError):
    """The record does not exist, or belongs to another tenant."""
