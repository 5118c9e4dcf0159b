"""Errors raised by the tracking service at its boundary.

Every failure that leaves an application service is one of the classes
below. The HTTP layer maps them to a status code and a stable error code.
"""

from http import HTTPStatus


class TrackingError(Exception):
    """Base exception for all tracking service errors."""

    status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    default_message: str = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(TrackingError):
    """Raised when a required field is missing or malformed."""

    status_code = HTTPStatus.BAD_REQUEST
    code = "validation_error"
    default_message = "Invalid request"


class Unauthorized(TrackingError):
    """Raised when no identity could be resolved for the caller."""

    status_code = HTTPStatus.UNAUTHORIZED
    code = "unauthorized"
    default_message = "Unauthorized"


class Forbidden(TrackingError):
    """Raised when the caller is known but its role is insufficient."""

    status_code = HTTPStatus.FORBIDDEN
    code = "forbidden"
    default_message = "Forbidden"


class NotFound(TrackingError):
    """Raised when no record matched, including ownership mismatches."""

    status_code = HTTPStatus.NOT_FOUND
    code = "not_found"
    default_message = "Not found"


class InternalError(TrackingError):
    """Raised on storage or unexpected failures. The message stays generic."""
