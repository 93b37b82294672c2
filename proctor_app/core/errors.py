"""Domain errors raised by the attempt, review and quiz services.

Each error carries a machine-readable ``code`` so the HTTP layer can map it to a
status without inspecting messages.
"""

from __future__ import annotations


class ProctorError(Exception):
    """Base class for recoverable domain failures."""

    code = "SERVER_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class NotFoundError(ProctorError):
    """Quiz, attempt, question or answer is absent or not owned by the requester."""

    code = "NOT_FOUND"


class ConflictError(ProctorError):
    """Attempt is not in the state the operation expects."""

    code = "INVALID_STATE"


class DuplicateAttemptError(ConflictError):
    """An in-progress attempt already exists for the (user, quiz) pair."""

    code = "ATTEMPT_IN_PROGRESS"


class AccessDeniedError(ProctorError):
    """Inactive quiz, user not activated, or an admin-only action."""

    code = "ACCESS_DENIED"


class ValidationError(ProctorError):
    """Malformed configuration or a missing required field."""

    code = "INVALID_REQUEST"

    def __init__(self, message: str, code: str | None = None, errors: list[str] | None = None) -> None:
        super().__init__(message, code)
        self.errors = list(errors) if errors else [message]


class ExpiredError(ProctorError):
    """Attempt time budget was exceeded."""

    code = "ATTEMPT_EXPIRED"


class AuthenticationError(ProctorError):
    """The request carries no requester identity."""

    code = "UNAUTHORIZED"
