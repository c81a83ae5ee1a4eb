"""Exception taxonomy shared by the service client, resolvers, and session."""

from __future__ import annotations

from typing import Optional


class TutorClientError(Exception):
    """Base class for failures raised by the tutoring client."""

    retryable: bool = False

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthRequired(TutorClientError):
    """No bearer credential is available, or the service rejected it."""


class NotFound(TutorClientError):
    """The requested resource does not exist yet (benign, triggers generation)."""


class Conflict(TutorClientError):
    """The service reports the resource already exists."""


class TransientNetwork(TutorClientError):
    """Connectivity loss, timeout, or server-side failure; safe to retry."""

    retryable = True


class ValidationFailure(TutorClientError):
    """An upstream payload could not be decoded into the expected shape."""


class InvalidTransition(TutorClientError):
    """An assessment session was asked to move between incompatible states."""
