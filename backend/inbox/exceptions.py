"""Error taxonomy shared by the inbox services.

Services raise these and never build HTTP responses; the handlers installed
in ``inbox.main`` translate them into the ``{success, message, error}``
envelope.
"""

from typing import Optional


class InboxError(Exception):
    """Base class for every error raised by the inbox services."""

    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error


class ValidationError(InboxError):
    """Malformed or missing input."""

    status_code = 400


class InvalidArgument(InboxError):
    """A value outside an enumerated allowed set."""

    status_code = 400


class AuthenticationError(InboxError):
    """Missing or unverifiable bearer credential."""

    status_code = 401


class AuthorizationError(InboxError):
    """Caller lacks the required relationship to the resource."""

    status_code = 403


class NotFoundError(InboxError):
    """Resource id does not resolve."""

    status_code = 404


class StorageError(InboxError):
    """Backing store failure."""

    status_code = 500
