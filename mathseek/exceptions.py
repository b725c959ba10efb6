"""Exception taxonomy for MathSeek.

Every failure surfaced by the pipeline is one of these types. Only network
failures are ever retried, and only by the API client.
"""

from typing import Optional


class MathSeekError(Exception):
    """Base class for all MathSeek errors."""

    kind = "unknown"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"kind": self.kind, "message": self.message}


class ApiError(MathSeekError):
    """The remote service rejected the request or returned an unusable result.

    ``status_code`` is set when the failure came from an HTTP status, so retry
    decisions never have to parse the message.
    """

    kind = "api"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ImageError(MathSeekError):
    """Image could not be decoded, encoded or is unsuitable."""

    kind = "image"


class ConfigError(MathSeekError):
    """Missing or invalid endpoint/credential configuration."""

    kind = "config"


class ExportError(MathSeekError):
    """Content could not be rendered to the requested format."""

    kind = "export"


class NetworkError(MathSeekError):
    """Transport failure, timeout or exhausted retries."""

    kind = "network"


class SerializationError(MathSeekError):
    """JSON (de)serialization failure."""

    kind = "serialization"


class IoError(MathSeekError):
    """Filesystem failure."""

    kind = "io"


class UnknownError(MathSeekError):
    kind = "unknown"


# HTTP statuses that mean the request itself is wrong; retrying cannot help.
NON_RETRYABLE_STATUS_CODES = (400, 401, 403)


def is_retryable(error: Exception) -> bool:
    """Decide whether a failed request attempt may be retried."""
    if isinstance(error, ApiError) and error.status_code in NON_RETRYABLE_STATUS_CODES:
        return False
    return isinstance(error, (ApiError, NetworkError, SerializationError))
