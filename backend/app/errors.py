"""Application error taxonomy mapped to HTTP responses."""


class AppError(Exception):
    """Base exception for errors that map to a client-facing response."""

    status_code: int = 500
    default_message: str = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed or missing input. Field-level messages are aggregated."""

    status_code = 400
    default_message = "Invalid request"

    def __init__(self, message: str | None = None, errors: list[str] | None = None):
        self.errors = errors or []
        if message is None and self.errors:
            message = ", ".join(self.errors)
        super().__init__(message)


class AuthenticationError(AppError):
    """No usable session token was presented."""

    status_code = 401
    default_message = "Not authenticated"


class AuthorizationError(AppError):
    """Role or ownership does not allow the requested action."""

    status_code = 403
    default_message = "Not authorized"


class NotFoundError(AppError):
    """Unknown incident or user id."""

    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    """Incident is not in the status the requested transition expects."""

    status_code = 400
    default_message = "Invalid state for this action"


class UnexpectedError(AppError):
    """Storage or network failure."""

    status_code = 500


class IdentifierExhaustedError(UnexpectedError):
    """Incident id allocation kept colliding with existing records."""

    default_message = "Could not allocate a unique incident id"
