"""Expected, recoverable failures of agenda operations.

Services raise these; the orchestrator turns them into result values with
user-facing text, so none of them ever reaches the monitoring sweep.
"""

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_ARGUMENT = "invalid_argument"
    ALREADY_COMPLETED = "already_completed"
    NOT_COMPLETED = "not_completed"
    PERMISSION_DENIED = "permission_denied"
    NO_CURRENT_ITEM = "no_current_item"


class AgendaError(Exception):
    """Base class for expected agenda failures."""

    kind: ErrorKind = ErrorKind.INVALID_ARGUMENT

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFound(AgendaError):
    kind = ErrorKind.NOT_FOUND


class InvalidArgument(AgendaError):
    kind = ErrorKind.INVALID_ARGUMENT


class AlreadyCompleted(AgendaError):
    kind = ErrorKind.ALREADY_COMPLETED


class NotCompleted(AgendaError):
    kind = ErrorKind.NOT_COMPLETED


class PermissionDenied(AgendaError):
    kind = ErrorKind.PERMISSION_DENIED


class NoCurrentItem(AgendaError):
    kind = ErrorKind.NO_CURRENT_ITEM
