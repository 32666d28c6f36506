class ProgmanError(Exception):
    """Base class for errors raised by the schedule/comment services."""

    status_code = 500


class NotFound(ProgmanError):
    """Referenced project, schedule row or comment page does not exist."""

    status_code = 404


class Conflict(ProgmanError):
    """Duplicate creation, e.g. a second comment page for the same (project, date)."""

    status_code = 409


class ValidationError(ProgmanError, ValueError):
    """Malformed input, rejected before touching persisted state."""

    status_code = 400


class TransientIOError(ProgmanError):
    """Persistence layer (or API, seen from the client) unavailable."""

    status_code = 503


def error_for_status(status_code: int, message: str) -> ProgmanError:
    """Map an HTTP status back to the matching exception (client side)."""
    for cls in (NotFound, Conflict, ValidationError):
        if cls.status_code == status_code:
            return cls(message)
    if status_code == 422:
        return ValidationError(message)
    return TransientIOError(message)
