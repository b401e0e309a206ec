"""
Data models for Togglr SDK.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class EvaluationResult:
    """Result of evaluating a feature for a context.

    ``found=False`` means the service does not know the feature key; it is
    not an error.
    """

    value: str
    enabled: bool
    found: bool = True

    @classmethod
    def from_entry(cls, entry: Any) -> "EvaluationResult":
        """Build a result from a cache entry."""
        return cls(value=entry.value, enabled=entry.enabled, found=entry.found)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvaluationResult":
        """Build a result from an evaluate response body."""
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        value = data.get("value")
        return cls(
            value="" if value is None else str(value),
            enabled=bool(data["enabled"]),
            found=bool(data.get("found", True)),
        )


@dataclass(frozen=True)
class FeatureHealth:
    """Health snapshot of a feature, including auto-disable status."""

    feature_key: Optional[str] = None
    environment_key: Optional[str] = None
    enabled: bool = False
    auto_disabled: bool = False
    error_rate: float = 0.0
    threshold: float = 0.0
    last_error_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeatureHealth":
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")
        return cls(
            feature_key=data.get("feature_key"),
            environment_key=data.get("environment_key"),
            enabled=bool(data.get("enabled") or False),
            auto_disabled=bool(data.get("auto_disabled") or False),
            error_rate=float(data.get("error_rate") or 0.0),
            threshold=float(data.get("threshold") or 0.0),
            last_error_at=data.get("last_error_at"),
        )

    @property
    def is_healthy(self) -> bool:
        """A feature is healthy when it is enabled and not auto-disabled."""
        return self.enabled and not self.auto_disabled

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feature_key": self.feature_key,
            "environment_key": self.environment_key,
            "enabled": self.enabled,
            "auto_disabled": self.auto_disabled,
            "error_rate": self.error_rate,
            "threshold": self.threshold,
            "last_error_at": self.last_error_at,
        }


@dataclass
class ErrorReport:
    """An error that occurred while a feature was in use."""

    error_type: str
    """Kind of error, e.g. "timeout" or "service_unavailable"."""

    error_message: str = ""
    """Human-readable description."""

    context: Dict[str, Any] = field(default_factory=dict)
    """Additional context data."""

    def __post_init__(self) -> None:
        if not self.error_type:
            raise ValueError("error_type is required")

    def with_context(self, key: str, value: Any) -> "ErrorReport":
        self.context[key] = value
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.error_type,
            "error_message": self.error_message,
            "context": dict(self.context),
        }


@dataclass(frozen=True)
class ErrorReportResult:
    """Outcome of reporting an error.

    ``is_pending`` is True when the service queued the report (HTTP 202).
    ``health`` is None if the response carried no health snapshot.
    """

    health: Optional[FeatureHealth]
    is_pending: bool = False


@dataclass
class TrackEvent:
    """Analytics event for a feature variant."""

    variant_key: str
    event_type: str
    """E.g. "success", "failure", "error" or "conversion"."""

    reward: Optional[float] = None
    context: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    dedup_key: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.variant_key:
            raise ValueError("variant_key is required")
        if not self.event_type:
            raise ValueError("event_type is required")

    def with_context(self, key: str, value: Any) -> "TrackEvent":
        self.context[key] = value
        return self

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "variant_key": self.variant_key,
            "event_type": self.event_type,
        }
        if self.reward is not None:
            data["reward"] = self.reward
        if self.context:
            data["context"] = dict(self.context)
        if self.created_at is not None:
            data["created_at"] = self.created_at.isoformat()
        if self.dedup_key is not None:
            data["dedup_key"] = self.dedup_key
        return data
