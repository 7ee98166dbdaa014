"""
Error taxonomy shared by the service and the call client.
"""

from __future__ import annotations


class FusionError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FusionError):
    """A required field is missing or malformed."""

    status_code = 400


class NotFoundError(FusionError):
    status_code = 404


class InternalError(FusionError):
    """Unexpected storage failure; the message is safe to show callers."""

    status_code = 500


class CallStateError(FusionError):
    """The requested call transition is not allowed from the current state."""

    status_code = 409
