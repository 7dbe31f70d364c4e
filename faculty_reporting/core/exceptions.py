"""
Error taxonomy for the reporting API.

Routes raise these instead of building ``HTTPException`` by hand so the same
failure always maps to the same status code. ``main.py`` registers a handler
that renders any ``ReportingError`` as ``{"error": message}``.
"""


class ReportingError(Exception):
    """Base exception for all reporting API errors."""

    status_code = 500
    default_message = "Internal server error."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(ReportingError):
    """Missing or malformed input."""

    status_code = 400
    default_message = "Invalid request."


# Authentication

class AuthenticationError(ReportingError):
    status_code = 401
    default_message = "Authentication failed."


class MissingTokenError(AuthenticationError):
    default_message = "Access denied (no token)."


class InvalidTokenError(AuthenticationError):
    status_code = 403
    default_message = "Invalid or expired token."


class InvalidCredentialsError(AuthenticationError):
    """Unknown identifier and wrong password share one message."""

    default_message = "Invalid credentials."


# Authorization

class AuthorizationError(ReportingError):
    status_code = 403
    default_message = "Not authorized."


class ForbiddenError(AuthorizationError):
    default_message = "Forbidden: insufficient role."


class NotFoundOrUnauthorizedError(AuthorizationError):
    """Record is missing or belongs to someone else; callers cannot tell which."""

    status_code = 404
    default_message = "Record not found or not owned by you."


class NotFoundError(ReportingError):
    status_code = 404
    default_message = "Record not found."


class ConflictError(ReportingError):
    status_code = 409
    default_message = "Conflict."


class DuplicateEmailError(ConflictError):
    default_message = "Email already registered."


class StoreError(ReportingError):
    """Persistence failure. The detail is logged, never returned."""

    status_code = 500
    default_message = "Database error."
