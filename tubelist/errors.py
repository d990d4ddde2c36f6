"""
Error types raised by the tubelist store and its collaborators.

Every error carries a human-readable message suitable for showing to the user.
"""


class TubelistError(Exception):
    """Base class for all tubelist errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TubelistError):
    """Malformed or missing input."""

    status_code = 400


class ConflictError(TubelistError):
    """Uniqueness violation (username or email taken)."""

    status_code = 409


class NotFoundError(TubelistError):
    """Referenced entity does not exist."""

    status_code = 404


class AuthError(TubelistError):
    """Credential mismatch."""

    status_code = 401


class UpstreamError(TubelistError):
    """The YouTube API was unavailable or rejected the request."""

    status_code = 502
