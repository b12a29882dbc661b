"""Service error taxonomy surfaced to HTTP callers.

Every error carries the HTTP status it maps to and a message that is safe to
show the caller. Storage and provider details never go into ``message``; they
are logged where the failure is caught.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for failures the API renders as ``{"error", "status"}``."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Malformed or missing input."""

    status_code = 400
    default_message = "Bad request"


class AuthenticationError(ServiceError):
    """No usable session identity."""

    status_code = 401
    default_message = "Unauthorized"


class AuthorizationError(ServiceError):
    """Authenticated, but the identity lacks the required role."""

    status_code = 403
    default_message = "Forbidden"


class NotFoundError(ServiceError):
    status_code = 404
    default_message = "Not found"


class InvalidStateError(ServiceError):
    """A credential or token exists but cannot be used in its current state.

    Rendered as a bad request so callers cannot tell a stored-but-unusable
    token apart from garbage input, except through the subclass messages the
    product shows on purpose.
    """

    status_code = 400
    default_message = "Invalid request"


class InvalidResetLink(InvalidStateError):
    """Unknown token, or a token presented with someone else's email."""

    default_message = "Invalid reset link"


class ResetLinkUsed(InvalidStateError):
    default_message = "Reset link already used"


class ResetLinkExpired(InvalidStateError):
    default_message = "Reset link expired"


class IncorrectPassword(InvalidStateError):
    default_message = "Current password is incorrect"


class RateLimitedError(ServiceError):
    status_code = 429
    default_message = "rate limited"


class InternalError(ServiceError):
    """Storage or provider failure; the cause is only in server logs."""

    status_code = 500
