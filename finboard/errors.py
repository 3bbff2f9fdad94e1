"""
Error types raised by the alert and screener core.
"""


class FinboardError(Exception):
    """Base class for all finboard errors."""

    pass


class ValidationError(FinboardError):
    """Raised when input has the wrong shape or values."""

    pass


class InvalidTransitionError(FinboardError):
    """Raised when a status change is not an edge of the alert state machine."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move alert from '{current}' to '{requested}'")


class ConflictError(FinboardError):
    """Raised when the stored status changed between read and write."""

    pass


class PersistenceError(FinboardError):
    """Raised when the storage collaborator fails or times out."""

    pass


class NotFoundError(FinboardError):
    """Raised when a referenced record does not exist."""

    pass
