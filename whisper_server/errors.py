"""Error types raised by the store and lifecycle layers.

Each carries the HTTP status the API layer renders it with.
"""


class WhisperError(Exception):
    """Base class for all whisper service errors."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WhisperError):
    """Missing or invalid input."""
    status_code = 400


class NotFoundError(WhisperError):
    """Referenced whisper, user or share code is absent or expired."""
    status_code = 404


class ConflictError(WhisperError):
    """A uniqueness constraint would be violated."""
    status_code = 409


class ExhaustedError(WhisperError):
    """Share code generation kept colliding."""
    status_code = 500


class StoreError(WhisperError):
    """The underlying storage failed."""
    status_code = 500
