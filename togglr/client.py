"""
Togglr client for feature evaluation, error reporting and analytics.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Collection, Dict, Optional, TypeVar, Union
from urllib.parse import quote

import httpx

from togglr.cache import CacheStats, ResultCache
from togglr.config import ClientConfig
from togglr.context import ContextLike, canonical_json, make_cache_key
from togglr.errors import (
    ErrorKind,
    FeatureNotFoundError,
    TogglrError,
    classify_error,
    error_from_status,
)
from togglr.metrics import MetricsSnapshot, RequestMetrics, SDKMetrics
from togglr.models import (
    ErrorReport,
    ErrorReportResult,
    EvaluationResult,
    FeatureHealth,
    TrackEvent,
)
from togglr.retry import fetch_with_retry
from togglr.telemetry import Telemetry, TelemetryEvent

logger = logging.getLogger("togglr")

T = TypeVar("T")

USER_AGENT = "togglr-sdk-python"

_DECODE_ERRORS = (ValueError, KeyError, TypeError)


def _feature_path(feature_key: str, action: str) -> str:
    return f"/sdk/v1/features/{quote(feature_key, safe='')}/{action}"


def _retry_after(response: httpx.Response) -> Optional[int]:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _error_message(response: httpx.Response) -> Optional[str]:
    """Extract a server-provided error message, if any."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        error = error.get("message")
    message = body.get("message") or error
    return message if isinstance(message, str) and message else None


class TogglrClient:
    """
    Togglr feature flag client.

    Every remote operation except ``health_check`` retries retryable
    failures with exponential backoff and raises a TogglrError once the
    retry budget is spent. Evaluation results are cached per feature key
    and context.

    Example:
        ```python
        async with TogglrClient(ClientConfig(api_key="your-api-key")) as client:
            context = RequestContext().with_user_id("123").with_country("US")

            if await client.is_enabled_or_default("new_ui", context, False):
                # Feature is enabled
                pass
        ```
    """

    def __init__(self, config: ClientConfig):
        """
        Initialize the Togglr client.

        Args:
            config: Client configuration
        """
        self._config = config
        self._logger = config.logger or logger
        cache_config = config.cache_config
        self._cache: Optional[ResultCache] = (
            ResultCache.from_config(cache_config) if cache_config.enabled else None
        )
        self._telemetry = Telemetry()
        self._metrics = SDKMetrics()
        self._closed = False
        self._http_client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={
                "Authorization": config.api_key,
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            },
            timeout=config.timeout_seconds,
            verify=config.build_ssl_verify(),
        )

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def closed(self) -> bool:
        return self._closed

    def on(self, event: str, handler: Callable[[TelemetryEvent], None]) -> "TogglrClient":
        """
        Register a telemetry handler.

        Args:
            event: Event name such as ``evaluate.stop``, or ``"*"``
            handler: Called with each TelemetryEvent

        Returns:
            Self for chaining
        """
        self._telemetry.on(event, handler)
        return self

    def off(self, event: str, handler: Callable[[TelemetryEvent], None]) -> "TogglrClient":
        """
        Remove a telemetry handler.

        Returns:
            Self for chaining
        """
        self._telemetry.off(event, handler)
        return self

    def _ensure_open(self) -> None:
        if self._closed:
            raise TogglrError("Client is closed")

    async def _send(
        self,
        method: str,
        path: str,
        feature_key: Optional[str],
        accepted: Collection[int] = (200,),
        json: Any = None,
        content: Optional[bytes] = None,
    ) -> httpx.Response:
        """Single request attempt; raises a classified TogglrError on failure."""
        headers = {"Content-Type": "application/json"} if content is not None else None
        try:
            response = await self._http_client.request(
                method, path, json=json, content=content, headers=headers
            )
        except httpx.HTTPError as e:
            raise classify_error(e, feature_key) from e
        except (TypeError, ValueError) as e:
            # Body could not be encoded; not retryable.
            raise TogglrError(f"Invalid request: {e}", kind=ErrorKind.BAD_REQUEST) from e

        if response.status_code not in accepted:
            raise error_from_status(
                response.status_code,
                feature_key,
                message=_error_message(response),
                retry_after=_retry_after(response),
            )
        return response

    async def _execute(
        self,
        operation: str,
        feature_key: Optional[str],
        call: Callable[[int], Awaitable[T]],
    ) -> T:
        """Run one logical operation through the retry loop."""

        def on_retry(attempt: int, delay: float, error: Exception) -> None:
            self._logger.debug(
                f"Retrying {operation} feature_key={feature_key} "
                f"attempt={attempt} delay={delay:.3f}s error={error}"
            )
            self._telemetry.event(
                f"{operation}.retry",
                operation,
                feature_key,
                measurements={"attempt": attempt, "delay_s": delay},
                metadata={"error": str(error)},
            )

        started = time.monotonic()
        with self._telemetry.span(operation, feature_key) as span:
            result = await fetch_with_retry(
                call,
                self._config.retries,
                self._config.backoff,
                on_retry=on_retry,
            )
            span.measurements["attempts"] = result.attempts

            error = None
            if not result.success:
                error = classify_error(result.error, feature_key)  # type: ignore[arg-type]
            self._metrics.record_request(
                RequestMetrics(
                    operation=operation,
                    success=result.success,
                    latency_ms=(time.monotonic() - started) * 1000,
                    attempts=result.attempts,
                    error_kind=error.kind.value if error is not None else None,
                )
            )

            if not result.success:
                self._logger.warning(
                    f"{operation} failed feature_key={feature_key} "
                    f"attempts={result.attempts} error={error!r}"
                )
                if error is not result.error:
                    raise error from result.error
                raise error

            return result.data  # type: ignore[return-value]

    async def evaluate(
        self,
        feature_key: str,
        context: Optional[ContextLike] = None,
    ) -> EvaluationResult:
        """
        Evaluate a feature for a context.

        Args:
            feature_key: The feature key to evaluate
            context: Request context

        Returns:
            The evaluation result; ``found`` is False for unknown features

        Raises:
            TogglrError: If the evaluation fails after all retries
        """
        if not feature_key:
            raise ValueError("feature_key is required")
        self._ensure_open()

        try:
            body = canonical_json(context).encode("utf-8")
            cache_key = make_cache_key(feature_key, context)
        except (TypeError, ValueError) as e:
            raise TogglrError(f"Invalid context: {e}", kind=ErrorKind.BAD_REQUEST) from e

        if self._cache is not None:
            entry = self._cache.get(cache_key)
            self._metrics.record_cache_lookup(entry is not None)
            if entry is not None:
                self._logger.debug(f"Cache hit feature_key={feature_key} cache_key={cache_key}")
                self._telemetry.event("evaluate.cache_hit", "evaluate", feature_key)
                return EvaluationResult.from_entry(entry)

        path = _feature_path(feature_key, "evaluate")

        async def call(attempt: int) -> EvaluationResult:
            response = await self._send("POST", path, feature_key, content=body)
            try:
                return EvaluationResult.from_dict(response.json())
            except _DECODE_ERRORS as e:
                raise classify_error(e, feature_key) from e

        result = await self._execute("evaluate", feature_key, call)

        if self._cache is not None:
            self._cache.put(cache_key, result)

        self._logger.debug(
            f"Feature evaluated feature_key={feature_key} "
            f"enabled={result.enabled} value={result.value!r} found={result.found}"
        )
        return result

    async def is_enabled(
        self,
        feature_key: str,
        context: Optional[ContextLike] = None,
    ) -> bool:
        """
        Check if a feature is enabled.

        Raises:
            FeatureNotFoundError: If the service does not know the feature
            TogglrError: If the evaluation fails
        """
        result = await self.evaluate(feature_key, context)
        if not result.found:
            raise FeatureNotFoundError(feature_key)
        return result.enabled

    async def is_enabled_or_default(
        self,
        feature_key: str,
        context: Optional[ContextLike] = None,
        default: bool = False,
    ) -> bool:
        """
        Check if a feature is enabled, falling back to a default.

        Unknown features and any failure return ``default``; the cases
        cannot be told apart from the return value. Never raises.

        Args:
            feature_key: The feature key to check
            context: Request context
            default: Value returned when no real result is available

        Returns:
            The feature's enabled state, or ``default``
        """
        try:
            result = await self.evaluate(feature_key, context)
        except Exception as e:
            self._logger.debug(f"Using default for feature_key={feature_key}: {e!r}")
            return default

        if not result.found:
            return default
        return result.enabled

    async def report_error(
        self,
        feature_key: str,
        report: Union[ErrorReport, str],
        error_message: str = "",
        context: Optional[Dict[str, Any]] = None,
    ) -> ErrorReportResult:
        """
        Report an error that occurred while a feature was active.

        The service uses these reports to auto-disable failing features.

        Args:
            feature_key: The feature the error belongs to
            report: An ErrorReport, or an error type string
            error_message: Message when ``report`` is a string
            context: Extra context when ``report`` is a string

        Returns:
            The feature health snapshot and whether the report is queued
        """
        if not feature_key:
            raise ValueError("feature_key is required")
        if isinstance(report, str):
            report = ErrorReport(report, error_message, dict(context or {}))
        self._ensure_open()

        payload = report.to_dict()
        path = _feature_path(feature_key, "report-error")

        async def call(attempt: int) -> ErrorReportResult:
            response = await self._send(
                "POST", path, feature_key, accepted=(200, 202), json=payload
            )
            is_pending = response.status_code == 202
            if not response.content:
                return ErrorReportResult(health=None, is_pending=is_pending)
            try:
                health = FeatureHealth.from_dict(response.json())
            except _DECODE_ERRORS as e:
                if is_pending:
                    return ErrorReportResult(health=None, is_pending=True)
                raise classify_error(e, feature_key) from e
            return ErrorReportResult(health=health, is_pending=is_pending)

        result = await self._execute("report_error", feature_key, call)
        self._logger.debug(
            f"Error reported feature_key={feature_key} "
            f"error_type={report.error_type} pending={result.is_pending}"
        )
        return result

    async def get_feature_health(self, feature_key: str) -> FeatureHealth:
        """
        Get health information for a feature. Never cached.

        Raises:
            TogglrError: If the request fails after all retries
        """
        if not feature_key:
            raise ValueError("feature_key is required")
        self._ensure_open()

        path = _feature_path(feature_key, "health")

        async def call(attempt: int) -> FeatureHealth:
            response = await self._send("GET", path, feature_key)
            try:
                return FeatureHealth.from_dict(response.json())
            except _DECODE_ERRORS as e:
                raise classify_error(e, feature_key) from e

        return await self._execute("health", feature_key, call)

    async def is_feature_healthy(self, feature_key: str) -> bool:
        """Check whether a feature is enabled and not auto-disabled."""
        health = await self.get_feature_health(feature_key)
        return health.is_healthy

    async def track_event(self, feature_key: str, event: TrackEvent) -> None:
        """
        Send an analytics event for a feature.

        Raises:
            TogglrError: If the request fails after all retries
        """
        if not feature_key:
            raise ValueError("feature_key is required")
        self._ensure_open()

        payload = event.to_dict()
        path = _feature_path(feature_key, "events")

        async def call(attempt: int) -> None:
            await self._send("POST", path, feature_key, accepted=(200, 202), json=payload)

        await self._execute("track_event", feature_key, call)
        self._logger.debug(
            f"Event tracked feature_key={feature_key} "
            f"variant_key={event.variant_key} event_type={event.event_type}"
        )

    async def health_check(self) -> bool:
        """
        Check that the API is reachable.

        Single attempt, no retries. Any failure returns False.
        """
        if self._closed:
            return False
        try:
            response = await self._http_client.get("/sdk/v1/health")
            if response.status_code != 200:
                return False
            body = response.json()
            return isinstance(body, dict) and body.get("status") == "ok"
        except Exception as e:
            self._logger.debug(f"Health check failed: {e}")
            return False

    def get_cache_stats(self) -> CacheStats:
        """Get cache statistics. All zero when caching is disabled."""
        if self._cache is None:
            return CacheStats()
        return self._cache.stats()

    def get_cache_hit_rate(self) -> float:
        """Get cache hit rate."""
        if self._cache is None:
            return 0.0
        return self._cache.hit_rate()

    def clear_cache(self) -> None:
        """Clear the cache."""
        if self._cache is not None:
            self._cache.clear()

    def invalidate(self, feature_key: str, context: Optional[ContextLike] = None) -> bool:
        """
        Drop the cached result for a feature and context.

        Returns:
            True if an entry was removed
        """
        if self._cache is None:
            return False
        return self._cache.delete(make_cache_key(feature_key, context))

    def get_metrics(self) -> MetricsSnapshot:
        """Get a snapshot of client metrics."""
        return self._metrics.snapshot()

    async def close(self) -> None:
        """Close the client and release resources."""
        if self._closed:
            return
        self._closed = True

        await self._http_client.aclose()

        if self._cache is not None:
            self._cache.clear()

    async def __aenter__(self) -> "TogglrClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()


def new_client(api_key: str, **options: Any) -> TogglrClient:
    """
    Create a client from an API key and keyword options.

    Args:
        api_key: Your Togglr API key
        **options: Any ClientConfig field, e.g. ``base_url``, ``retries``,
            ``cache_enabled``, ``cache_max_size``, ``cache_ttl_seconds``

    Returns:
        A ready-to-use client
    """
    return TogglrClient(ClientConfig(api_key=api_key, **options))
