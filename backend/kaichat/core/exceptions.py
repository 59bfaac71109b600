"""
Custom exceptions for the application.

Boundary errors carry a canonical ``code`` and an HTTP status so the API layer
can render them without inspecting the concrete class.
"""

from typing import Any, Optional


class KaiError(Exception):
    """Base exception for kaichat."""

    code: str = "internal"
    http_status: int = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    @property
    def status(self) -> str:
        """Upper-snake status name used in the callable error envelope."""
        return self.code.replace("-", "_").upper()


class AuthenticationError(KaiError):
    """No caller identity."""

    code = "unauthenticated"
    http_status = 401


class ValidationError(KaiError):
    """Missing or malformed fields, unrecognized type."""

    code = "invalid-argument"
    http_status = 400


class ForbiddenError(KaiError):
    """Caller identity does not match the resource owner."""

    code = "permission-denied"
    http_status = 403


class NotFoundError(KaiError):
    """Resource not found."""

    code = "not-found"
    http_status = 404


class InternalError(KaiError):
    """Remote AI failure or unexpected exception."""

    code = "internal"
    http_status = 500


class InfrastructureError(Exception):
    """Infrastructure-related error (DB, object store, network)."""

    pass


class IndexUnavailableError(InfrastructureError):
    """The ordering index needed by a query does not exist (yet)."""

    pass
