"""Error taxonomy for the marking pipeline.

Every failure that leaves the marking core is one of these. Each carries a
terse ``user_message`` that is safe to show to students and an HTTP-style
``status_code``; the full diagnostic detail lives in ``str(error)`` and in
the server logs only.
"""

from typing import Optional

GENERIC_FAILURE_MESSAGE = "Failed to mark essay. Please try again."


class MarkingError(Exception):
    """Base class for marking pipeline failures."""

    status_code = 500
    user_message = GENERIC_FAILURE_MESSAGE


class RequestValidationError(MarkingError):
    """The request is missing a required field or has an invalid value."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.user_message = message


class ConfigurationError(MarkingError):
    """The service is not configured (e.g. no API credential)."""

    user_message = "Marking service is not configured."


class GatewayError(MarkingError):
    """The completion service failed, timed out, or returned no content."""


class ParseError(MarkingError):
    """The completion could not be recovered as a well-formed result."""

    def __init__(self, message: str, raw_preview: Optional[str] = None):
        super().__init__(message)
        self.raw_preview = raw_preview
