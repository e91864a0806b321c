"""
Helpdesk Errors

Validation and access errors are raised before any mutation.
NotificationDeliveryFailure is always recovered locally by the dispatcher.
"""

from typing import Iterable, List, Optional


class HelpdeskError(Exception):
    """Base for all errors raised by the helpdesk core."""
    pass


class ValidationError(HelpdeskError):
    """Malformed or missing input. Carries the offending field names."""

    def __init__(self, message: str = "Invalid data", fields: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.message = message
        self.fields: List[str] = list(fields or [])


class AccessDenied(HelpdeskError):
    """Raised when the access policy rejects a request. Deliberately vague."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class NotFound(HelpdeskError):
    """Referenced ticket, user or comment does not exist."""

    def __init__(self, kind: str, key):
        super().__init__(f"{kind.capitalize()} not found")
        self.kind = kind
        self.key = key


class ConflictError(HelpdeskError):
    """Unique constraint violated in the persistence backend."""
    pass


class NotificationDeliveryFailure(HelpdeskError):
    """Transport could not deliver a notification."""
    pass


class NotAuthenticated(HelpdeskError):
    """No principal could be resolved for the request."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)
