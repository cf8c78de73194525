"""
core/errors.py -- Domain error hierarchy shared by auth/ and forum/.

Services raise these; the API layer converts them into the structured error
envelope in one exception handler (api/main.py). Each subclass carries its
machine-readable code and HTTP status so route handlers never pick status
codes by hand.

Credential and second-factor errors use fixed, generic messages. Callers must
not customize them -- a message that says "no such user" turns the login
endpoint into a username oracle.

Layer rule: core/ is the kernel. No imports from api/, auth/ or forum/.
"""

from __future__ import annotations


class ForumError(Exception):
    """Base class for every recoverable, caller-facing failure."""

    code: str = "error"
    status_code: int = 400
    message: str = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class InvalidCredentials(ForumError):
    code = "invalid_credentials"
    status_code = 401
    message = "Incorrect username or password."

    def __init__(self) -> None:
        super().__init__()


class Unauthenticated(ForumError):
    code = "unauthenticated"
    status_code = 401
    message = "Authentication required."


class InvalidSecondFactor(ForumError):
    code = "invalid_second_factor"
    status_code = 401
    message = "Invalid verification code."

    def __init__(self) -> None:
        super().__init__()


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class Forbidden(ForumError):
    code = "forbidden"
    status_code = 403
    message = "Not authorized to modify this resource."


class SecondFactorRequired(ForumError):
    """Eligible for the operation, but the second factor is unproven this session.

    Rendered with a top-level needs2FA flag so clients can route the user to
    the TOTP challenge instead of treating it as a hard denial.
    """

    code = "second_factor_required"
    status_code = 403
    message = "2FA verification required."


class RegistrationDisabled(ForumError):
    code = "registration_disabled"
    status_code = 403
    message = "Self-registration is disabled."


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


class ResourceNotFound(ForumError):
    code = "not_found"
    status_code = 404
    message = "Resource not found."


class DuplicateTitle(ForumError):
    code = "duplicate_title"
    status_code = 409
    message = "A post with this title already exists."


class UsernameTaken(ForumError):
    code = "conflict"
    status_code = 409
    message = "Username already exists."


class CapacityExceeded(ForumError):
    code = "capacity_exceeded"
    status_code = 409
    message = "Maximum number of comments reached."
