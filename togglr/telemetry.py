"""
Telemetry events for remote operations.

Handlers receive a TelemetryEvent for the start, stop and failure of every
operation. Emission is fire-and-forget: handler errors are logged and
dropped.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

logger = logging.getLogger("togglr.telemetry")

ALL_EVENTS = "*"


@dataclass
class TelemetryEvent:
    """A single telemetry event."""

    name: str
    """Event name, e.g. ``evaluate.start`` or ``health.exception``."""

    operation: str
    feature_key: Optional[str] = None
    measurements: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


@dataclass
class Span:
    """Measurements collected while an operation runs."""

    operation: str
    feature_key: Optional[str]
    started_at: float
    measurements: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started_at) * 1000


class Telemetry:
    """
    Dispatches telemetry events to registered handlers.

    Example:
        ```python
        telemetry = Telemetry()
        telemetry.on("evaluate.stop", lambda e: print(e.measurements))

        with telemetry.span("evaluate", "new_ui") as span:
            span.measurements["attempts"] = 1
        ```
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable[[TelemetryEvent], None]]] = {}

    def on(self, name: str, handler: Callable[[TelemetryEvent], None]) -> None:
        """
        Register a handler.

        Args:
            name: Event name, or ``"*"`` for every event
            handler: Called with each matching TelemetryEvent
        """
        self._handlers.setdefault(name, []).append(handler)

    def off(self, name: str, handler: Callable[[TelemetryEvent], None]) -> None:
        """Remove a handler."""
        handlers = self._handlers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)

    def has_handlers(self) -> bool:
        return any(self._handlers.values())

    def emit(self, event: TelemetryEvent) -> None:
        """Deliver an event to its handlers."""
        handlers = self._handlers.get(event.name, []) + self._handlers.get(ALL_EVENTS, [])
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.warning(f"Error in telemetry handler for {event.name}: {e}")

    def event(
        self,
        name: str,
        operation: str,
        feature_key: Optional[str] = None,
        measurements: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Build and emit an event."""
        if not self.has_handlers():
            return
        self.emit(
            TelemetryEvent(
                name=name,
                operation=operation,
                feature_key=feature_key,
                measurements=measurements or {},
                metadata=metadata or {},
            )
        )

    @contextmanager
    def span(self, operation: str, feature_key: Optional[str] = None) -> Iterator[Span]:
        """
        Emit ``start``, then ``stop`` or ``exception`` around a block.

        The exception, if any, is re-raised unchanged.
        """
        span = Span(operation=operation, feature_key=feature_key, started_at=time.monotonic())
        self.event(f"{operation}.start", operation, feature_key)
        try:
            yield span
        except Exception as e:
            measurements = dict(span.measurements, duration_ms=span.elapsed_ms)
            kind = getattr(e, "kind", None)
            if kind is not None:
                measurements["error_kind"] = getattr(kind, "value", kind)
            metadata = dict(span.metadata, error=str(e))
            self.event(f"{operation}.exception", operation, feature_key, measurements, metadata)
            raise
        else:
            measurements = dict(span.measurements, duration_ms=span.elapsed_ms)
            self.event(f"{operation}.stop", operation, feature_key, measurements, span.metadata)
