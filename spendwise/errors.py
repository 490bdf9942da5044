UNIQUE_VIOLATION = "23505"


class TrackerError(Exception):
    """Base class for every error raised inside spendwise."""

    def __init__(self, message: str = "", code: str = ""):
        super().__init__(message)
        self.message = message
        self.code = code


class ValidationError(TrackerError):
    """User-correctable input problem; the message is shown as-is."""


class PersistenceError(TrackerError):
    """A backend call failed (I/O, constraint violation, bad column)."""

    @property
    def is_constraint_violation(self) -> bool:
        return self.code == UNIQUE_VIOLATION


class AuthError(TrackerError):
    """Invalid credentials or no session."""


class NotFoundError(TrackerError):
    """An expected record is absent."""
