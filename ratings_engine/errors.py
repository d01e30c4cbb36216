"""
Error taxonomy for the ratings engine.

Every operation reports failures synchronously by raising one of these.
The API layer maps them to HTTP responses via ``http_status``.
"""


class RatingsEngineError(Exception):
    """Base class for all engine errors."""

    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(RatingsEngineError):
    """Malformed input: out-of-range stars, bad identifiers, bad dates."""

    http_status = 400


class NotFound(RatingsEngineError):
    """Referenced teacher or snapshot does not exist."""

    http_status = 404


class InvalidState(RatingsEngineError):
    """Operation not allowed in the current state (inactive teacher, open week)."""

    http_status = 400


class ConflictError(RatingsEngineError):
    """Write-once resource already written (duplicate snapshot)."""

    http_status = 409
