"""Tests for backoff and retry logic."""

import math

import pytest
from togglr.retry import (
    BackoffConfig,
    calculate_backoff,
    is_retryable_error,
    fetch_with_retry,
    retry_async,
)
from togglr.errors import (
    BadRequestError,
    FeatureNotFoundError,
    InternalServerError,
    TogglrError,
    TooManyRequestsError,
    UnauthorizedError,
)


class RecordingSleep:
    """Sleep replacement that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class TestBackoffConfig:
    """Tests for BackoffConfig."""

    def test_defaults(self):
        """Defaults should match the documented values."""
        config = BackoffConfig()
        assert config.base_delay == 0.5
        assert config.max_delay == 10.0
        assert config.multiplier == 1.5

    def test_first_attempt_has_no_delay(self):
        """Attempt 0 is the initial try and never waits."""
        assert BackoffConfig().calculate_delay(0) == 0.0

    def test_documented_sequence(self):
        """base=0.5, mult=1.5 should give 0.5, 0.75, 1.125."""
        config = BackoffConfig(base_delay=0.5, max_delay=10.0, multiplier=1.5)

        assert config.calculate_delay(1) == pytest.approx(0.5)
        assert config.calculate_delay(2) == pytest.approx(0.75)
        assert config.calculate_delay(3) == pytest.approx(1.125)

    def test_capped_at_max_delay(self):
        """Large attempts should be capped at max_delay."""
        config = BackoffConfig(base_delay=0.5, max_delay=10.0, multiplier=1.5)

        assert config.calculate_delay(50) == 10.0
        assert config.calculate_delay(100000) == 10.0

    def test_non_decreasing_and_bounded(self):
        """Delays never shrink and never exceed max_delay."""
        config = BackoffConfig(base_delay=0.1, max_delay=3.0, multiplier=2.0)

        delays = [config.calculate_delay(n) for n in range(1, 40)]

        assert delays == sorted(delays)
        assert all(0 <= d <= 3.0 for d in delays)

    def test_calculate_backoff_delegates(self):
        """calculate_backoff should match the config method."""
        config = BackoffConfig(base_delay=0.2, max_delay=5.0, multiplier=3.0)
        assert calculate_backoff(2, config) == pytest.approx(0.6)

    def test_negative_attempt_rejected(self):
        """Negative attempts are invalid."""
        with pytest.raises(ValueError):
            BackoffConfig().calculate_delay(-1)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"multiplier": 0},
            {"multiplier": -1.5},
            {"base_delay": -0.1},
            {"max_delay": -1.0},
            {"base_delay": math.nan},
        ],
    )
    def test_invalid_config_rejected(self, kwargs):
        """Invalid settings should be rejected at construction."""
        with pytest.raises(ValueError):
            BackoffConfig(**kwargs)


class TestIsRetryableError:
    """Tests for is_retryable_error function."""

    def test_transport_and_server_errors_are_retryable(self):
        """Generic, 429 and 500 errors should be retryable."""
        assert is_retryable_error(TogglrError("Request failed: connection refused"))
        assert is_retryable_error(TogglrError("HTTP 503", status_code=503))
        assert is_retryable_error(TooManyRequestsError())
        assert is_retryable_error(InternalServerError())

    def test_client_errors_are_not_retryable(self):
        """400, 401 and feature-not-found should not be retried."""
        assert not is_retryable_error(BadRequestError())
        assert not is_retryable_error(UnauthorizedError())
        assert not is_retryable_error(FeatureNotFoundError("new_ui"))

    def test_unclassified_exceptions_are_not_retryable(self):
        """Plain exceptions are surfaced immediately."""
        assert not is_retryable_error(RuntimeError("boom"))


class TestFetchWithRetry:
    """Tests for fetch_with_retry function."""

    async def test_success_on_first_try(self):
        """Should return success on first try without sleeping."""
        sleep = RecordingSleep()
        attempts_seen = []

        async def success(attempt):
            attempts_seen.append(attempt)
            return "ok"

        result = await fetch_with_retry(success, retries=3, sleep=sleep)

        assert result.success
        assert result.data == "ok"
        assert result.attempts == 1
        assert attempts_seen == [0]
        assert sleep.delays == []

    async def test_retries_on_retryable_error(self):
        """Should retry on retryable errors and pass the attempt number."""
        sleep = RecordingSleep()
        attempts_seen = []

        async def fail_twice(attempt):
            attempts_seen.append(attempt)
            if attempt < 2:
                raise InternalServerError()
            return "ok"

        result = await fetch_with_retry(
            fail_twice,
            retries=3,
            backoff=BackoffConfig(base_delay=0.5, max_delay=10.0, multiplier=1.5),
            sleep=sleep,
        )

        assert result.success
        assert result.data == "ok"
        assert result.attempts == 3
        assert attempts_seen == [0, 1, 2]
        assert sleep.delays == pytest.approx([0.5, 0.75])

    async def test_no_retry_on_non_retryable_error(self):
        """Unauthorized should be attempted exactly once."""
        sleep = RecordingSleep()
        call_count = 0

        async def auth_fail(attempt):
            nonlocal call_count
            call_count += 1
            raise UnauthorizedError("Invalid API key")

        result = await fetch_with_retry(auth_fail, retries=5, sleep=sleep)

        assert not result.success
        assert isinstance(result.error, UnauthorizedError)
        assert result.attempts == 1
        assert call_count == 1
        assert sleep.delays == []

    async def test_exhausts_all_retries(self):
        """Should make retries + 1 attempts on persistent failure."""
        sleep = RecordingSleep()
        call_count = 0

        async def always_fail(attempt):
            nonlocal call_count
            call_count += 1
            raise TogglrError("Request failed: connection refused")

        result = await fetch_with_retry(always_fail, retries=3, sleep=sleep)

        assert not result.success
        assert isinstance(result.error, TogglrError)
        assert result.attempts == 4
        assert call_count == 4
        assert len(sleep.delays) == 3

    async def test_zero_retries(self):
        """retries=0 means a single attempt."""
        call_count = 0

        async def always_fail(attempt):
            nonlocal call_count
            call_count += 1
            raise InternalServerError()

        result = await fetch_with_retry(always_fail, retries=0, sleep=RecordingSleep())

        assert result.attempts == 1
        assert call_count == 1

    async def test_on_retry_callback(self):
        """on_retry should receive the next attempt and its delay."""
        calls = []

        async def fail_once(attempt):
            if attempt == 0:
                raise TooManyRequestsError()
            return "ok"

        await fetch_with_retry(
            fail_once,
            retries=2,
            backoff=BackoffConfig(base_delay=0.25),
            sleep=RecordingSleep(),
            on_retry=lambda attempt, delay, error: calls.append((attempt, delay, type(error))),
        )

        assert calls == [(1, 0.25, TooManyRequestsError)]

    async def test_real_sleep_is_used_by_default(self):
        """The default sleep should actually wait between attempts."""
        call_count = 0

        async def fail_once(attempt):
            nonlocal call_count
            call_count += 1
            if attempt == 0:
                raise InternalServerError()
            return "ok"

        result = await fetch_with_retry(
            fail_once, retries=1, backoff=BackoffConfig(base_delay=0.01)
        )

        assert result.success
        assert call_count == 2


class TestRetryAsync:
    """Tests for retry_async function."""

    async def test_returns_data(self):
        """Should return the function result."""

        async def ok(attempt):
            return 42

        assert await retry_async(ok, retries=2, sleep=RecordingSleep()) == 42

    async def test_raises_last_error(self):
        """Should raise the classified error once retries are spent."""

        async def always_fail(attempt):
            raise InternalServerError()

        with pytest.raises(InternalServerError):
            await retry_async(always_fail, retries=2, sleep=RecordingSleep())
