"""
Error types for Togglr SDK.

Every failure of a remote operation is classified into one of a closed set of
kinds. Retry eligibility depends only on the kind.
"""

from enum import Enum
from typing import Optional

import httpx


class ErrorKind(str, Enum):
    """Closed set of error kinds."""

    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FEATURE_NOT_FOUND = "feature_not_found"
    TOO_MANY_REQUESTS = "too_many_requests"
    INTERNAL_SERVER = "internal_server"
    GENERIC = "generic"

    @property
    def retryable(self) -> bool:
        """Whether a failure of this kind may succeed on a later attempt."""
        return self in _RETRYABLE_KINDS


_RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.TOO_MANY_REQUESTS,
        ErrorKind.INTERNAL_SERVER,
        ErrorKind.GENERIC,
    }
)


class TogglrError(Exception):
    """Base exception for all Togglr SDK errors.

    Raised directly for the generic kind: unexpected HTTP statuses,
    transport failures, timeouts and malformed responses.
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.GENERIC,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(message={self.message!r}, "
            f"kind={self.kind.value}, status_code={self.status_code})"
        )


class BadRequestError(TogglrError):
    """Raised when the API returns 400."""

    def __init__(self, message: str = "Bad request"):
        super().__init__(message, kind=ErrorKind.BAD_REQUEST, status_code=400)


class UnauthorizedError(TogglrError):
    """Raised when the API returns 401."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, kind=ErrorKind.UNAUTHORIZED, status_code=401)


class FeatureNotFoundError(TogglrError):
    """Raised when a feature key is unknown to the service."""

    def __init__(self, feature_key: str, message: Optional[str] = None):
        super().__init__(
            message or f"Feature '{feature_key}' not found",
            kind=ErrorKind.FEATURE_NOT_FOUND,
            status_code=404,
        )
        self.feature_key = feature_key


class TooManyRequestsError(TogglrError):
    """Raised when the API returns 429."""

    def __init__(
        self,
        message: str = "Too many requests",
        retry_after: Optional[int] = None,
    ):
        super().__init__(message, kind=ErrorKind.TOO_MANY_REQUESTS, status_code=429)
        self.retry_after = retry_after


class InternalServerError(TogglrError):
    """Raised when the API returns 500."""

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message, kind=ErrorKind.INTERNAL_SERVER, status_code=500)


def error_from_status(
    status_code: int,
    feature_key: Optional[str] = None,
    message: Optional[str] = None,
    retry_after: Optional[int] = None,
) -> TogglrError:
    """
    Map an HTTP status code to its error variant.

    Args:
        status_code: HTTP status returned by the API
        feature_key: Feature the request was about, used for 404
        message: Optional server-provided message
        retry_after: Parsed Retry-After header for 429

    Returns:
        The classified TogglrError
    """
    if status_code == 400:
        return BadRequestError(message or "Bad request")
    if status_code == 401:
        return UnauthorizedError(message or "Authentication required")
    if status_code == 404:
        if feature_key is not None:
            return FeatureNotFoundError(feature_key)
        return TogglrError(message or "Not found", status_code=404)
    if status_code == 429:
        return TooManyRequestsError(message or "Too many requests", retry_after=retry_after)
    if status_code == 500:
        return InternalServerError(message or "Internal server error")
    return TogglrError(message or f"HTTP {status_code}", status_code=status_code)


def classify_error(
    error: Exception,
    feature_key: Optional[str] = None,
) -> TogglrError:
    """
    Classify an exception into a TogglrError.

    Args:
        error: The original exception
        feature_key: Feature the failing request was about

    Returns:
        A classified TogglrError
    """
    if isinstance(error, TogglrError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        return error_from_status(error.response.status_code, feature_key)

    if isinstance(error, httpx.TimeoutException):
        return TogglrError(f"Request timed out: {error}")

    if isinstance(error, httpx.TransportError):
        return TogglrError(f"Request failed: {error}")

    if isinstance(error, (ValueError, KeyError, TypeError)):
        return TogglrError(f"Malformed response: {error}")

    return TogglrError(str(error) or error.__class__.__name__)
