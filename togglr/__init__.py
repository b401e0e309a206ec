"""
Togglr Python SDK - feature flag evaluation with caching and retries.

Usage:
    from togglr import TogglrClient, ClientConfig, RequestContext

    async with TogglrClient(ClientConfig(api_key="your-api-key")) as client:
        context = RequestContext().with_user_id("123")
        result = await client.evaluate("new_ui", context)
"""

from togglr.client import TogglrClient, new_client
from togglr.config import ClientConfig
from togglr.context import RequestContext, canonical_json, make_cache_key
from togglr.retry import (
    BackoffConfig,
    RetryResult,
    calculate_backoff,
    fetch_with_retry,
    is_retryable_error,
    retry_async,
)
from togglr.cache import CacheConfig, CacheEntry, CacheStats, ResultCache
from togglr.errors import (
    TogglrError,
    ErrorKind,
    BadRequestError,
    UnauthorizedError,
    FeatureNotFoundError,
    TooManyRequestsError,
    InternalServerError,
    classify_error,
    error_from_status,
)
from togglr.models import (
    EvaluationResult,
    FeatureHealth,
    ErrorReport,
    ErrorReportResult,
    TrackEvent,
)
from togglr.metrics import SDKMetrics, MetricsSnapshot, RequestMetrics, OperationStats
from togglr.telemetry import Telemetry, TelemetryEvent

__version__ = "1.0.0"
__all__ = [
    # Client
    "TogglrClient",
    "ClientConfig",
    "new_client",
    # Context
    "RequestContext",
    "canonical_json",
    "make_cache_key",
    # Retry
    "BackoffConfig",
    "RetryResult",
    "calculate_backoff",
    "fetch_with_retry",
    "is_retryable_error",
    "retry_async",
    # Cache
    "CacheConfig",
    "CacheEntry",
    "CacheStats",
    "ResultCache",
    # Errors
    "TogglrError",
    "ErrorKind",
    "BadRequestError",
    "UnauthorizedError",
    "FeatureNotFoundError",
    "TooManyRequestsError",
    "InternalServerError",
    "classify_error",
    "error_from_status",
    # Models
    "EvaluationResult",
    "FeatureHealth",
    "ErrorReport",
    "ErrorReportResult",
    "TrackEvent",
    # Metrics
    "SDKMetrics",
    "MetricsSnapshot",
    "RequestMetrics",
    "OperationStats",
    # Telemetry
    "Telemetry",
    "TelemetryEvent",
]
