"""Tests for error classification."""

import httpx
import pytest
from togglr.errors import (
    BadRequestError,
    ErrorKind,
    FeatureNotFoundError,
    InternalServerError,
    TogglrError,
    TooManyRequestsError,
    UnauthorizedError,
    classify_error,
    error_from_status,
)


class TestErrorKind:
    """Tests for ErrorKind retry table."""

    @pytest.mark.parametrize(
        "kind,retryable",
        [
            (ErrorKind.BAD_REQUEST, False),
            (ErrorKind.UNAUTHORIZED, False),
            (ErrorKind.FEATURE_NOT_FOUND, False),
            (ErrorKind.TOO_MANY_REQUESTS, True),
            (ErrorKind.INTERNAL_SERVER, True),
            (ErrorKind.GENERIC, True),
        ],
    )
    def test_retryable(self, kind, retryable):
        """Retry eligibility is fixed per kind."""
        assert kind.retryable is retryable


class TestErrorFromStatus:
    """Tests for error_from_status function."""

    @pytest.mark.parametrize(
        "status,error_type,kind",
        [
            (400, BadRequestError, ErrorKind.BAD_REQUEST),
            (401, UnauthorizedError, ErrorKind.UNAUTHORIZED),
            (404, FeatureNotFoundError, ErrorKind.FEATURE_NOT_FOUND),
            (429, TooManyRequestsError, ErrorKind.TOO_MANY_REQUESTS),
            (500, InternalServerError, ErrorKind.INTERNAL_SERVER),
        ],
    )
    def test_known_statuses(self, status, error_type, kind):
        """Known statuses map to their variants."""
        error = error_from_status(status, "new_ui")

        assert type(error) is error_type
        assert error.kind is kind
        assert error.status_code == status

    @pytest.mark.parametrize("status", [403, 409, 502, 503, 418])
    def test_other_statuses_are_generic(self, status):
        """Any other status becomes a retryable generic error."""
        error = error_from_status(status, "new_ui")

        assert type(error) is TogglrError
        assert error.kind is ErrorKind.GENERIC
        assert error.status_code == status
        assert error.retryable
        assert str(status) in error.message

    def test_feature_not_found_carries_key(self):
        """404 errors keep the feature key."""
        error = error_from_status(404, "new_ui")

        assert error.feature_key == "new_ui"
        assert "new_ui" in str(error)

    def test_too_many_requests_carries_retry_after(self):
        """429 errors keep the Retry-After value."""
        error = error_from_status(429, "new_ui", retry_after=7)
        assert error.retry_after == 7

    def test_server_message_is_used(self):
        """A server-provided message replaces the default."""
        error = error_from_status(400, "new_ui", message="context too large")
        assert error.message == "context too large"


class TestClassifyError:
    """Tests for classify_error function."""

    def test_passes_through_togglr_errors(self):
        """Already classified errors are returned unchanged."""
        error = UnauthorizedError()
        assert classify_error(error) is error

    def test_connect_error_is_generic(self):
        """Connection failures become retryable generic errors."""
        error = classify_error(httpx.ConnectError("Connection refused"))

        assert error.kind is ErrorKind.GENERIC
        assert error.retryable
        assert "Connection refused" in error.message

    def test_timeout_is_generic(self):
        """Timeouts become retryable generic errors."""
        error = classify_error(httpx.ReadTimeout("timed out"))

        assert error.kind is ErrorKind.GENERIC
        assert error.retryable
        assert "timed out" in error.message

    def test_http_status_error(self):
        """HTTPStatusError maps through the status table."""
        request = httpx.Request("GET", "http://localhost/sdk/v1/features/x/health")
        response = httpx.Response(401, request=request)
        exc = httpx.HTTPStatusError("unauthorized", request=request, response=response)

        assert isinstance(classify_error(exc), UnauthorizedError)

    def test_malformed_response(self):
        """Decoding errors become generic errors."""
        error = classify_error(ValueError("Expecting value"))

        assert error.kind is ErrorKind.GENERIC
        assert "Malformed response" in error.message
