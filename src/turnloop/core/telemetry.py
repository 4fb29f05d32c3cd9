"""
Telemetry sinks for runtime observability.

The default sink is a no-op. `InMemoryTelemetrySink` keeps every measurement
so tests can assert on spans and counters.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..llms.types import JSONValue


@dataclass(frozen=True, slots=True)
class TelemetryEvent:
    """
    Point-in-time telemetry event.

    Attributes:
        name: Event name.
        timestamp_ms: Epoch milliseconds at emission time.
        attributes: JSON-safe event attributes.
    """

    name: str
    timestamp_ms: int
    attributes: dict[str, JSONValue] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TelemetrySpan:
    """
    Started telemetry span.

    Attributes:
        name: Span name.
        started_at_ms: Span start timestamp.
        attributes: JSON-safe span attributes.
    """

    name: str
    started_at_ms: int
    attributes: dict[str, JSONValue] = field(default_factory=dict)


class TelemetrySink(Protocol):
    """Protocol implemented by telemetry backends."""

    def record_event(self, event: TelemetryEvent) -> None:
        ...

    def start_span(self, name: str, *, attributes: dict[str, JSONValue] | None = None) -> TelemetrySpan | None:
        """
        Start a span when backend supports spans.

        Returns:
            Span wrapper or `None` when unsupported.
        """
        ...

    def end_span(
        self,
        span: TelemetrySpan | None,
        *,
        status: str,
        error: str | None = None,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None:
        """
        End a span with status and optional metadata.

        Args:
            span: Span returned from `start_span`.
            status: Terminal status string (`ok`/`error`/`aborted`).
            error: Optional error detail string.
            attributes: Optional final span attributes.
        """
        ...

    def increment_counter(
        self,
        name: str,
        value: int = 1,
        *,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None:
        ...


@dataclass(slots=True)
class NullTelemetrySink:
    """No-op telemetry sink used as safe default."""

    def record_event(self, event: TelemetryEvent) -> None:
        _ = event
        return None

    def start_span(self, name: str, *, attributes: dict[str, JSONValue] | None = None) -> TelemetrySpan | None:
        _ = name
        _ = attributes
        return None

    def end_span(
        self,
        span: TelemetrySpan | None,
        *,
        status: str,
        error: str | None = None,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None:
        _ = span
        _ = status
        _ = error
        _ = attributes
        return None

    def increment_counter(
        self,
        name: str,
        value: int = 1,
        *,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None:
        _ = name
        _ = value
        _ = attributes
        return None


@dataclass(slots=True)
class InMemoryTelemetrySink:
    """Test/debug telemetry sink that stores emitted measurements."""

    _events: list[TelemetryEvent] = field(default_factory=list)
    _spans_closed: list[dict[str, Any]] = field(default_factory=list)
    _counters: list[dict[str, Any]] = field(default_factory=list)

    def record_event(self, event: TelemetryEvent) -> None:
        self._events.append(event)

    def start_span(self, name: str, *, attributes: dict[str, JSONValue] | None = None) -> TelemetrySpan:
        return TelemetrySpan(name=name, started_at_ms=now_ms(), attributes=dict(attributes or {}))

    def end_span(
        self,
        span: TelemetrySpan | None,
        *,
        status: str,
        error: str | None = None,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None:
        if span is None:
            return None
        self._spans_closed.append(
            {
                "name": span.name,
                "started_at_ms": span.started_at_ms,
                "ended_at_ms": now_ms(),
                "status": status,
                "error": error,
                "attributes": {
                    **span.attributes,
                    **dict(attributes or {}),
                },
            }
        )
        return None

    def increment_counter(
        self,
        name: str,
        value: int = 1,
        *,
        attributes: dict[str, JSONValue] | None = None,
    ) -> None:
        self._counters.append(
            {
                "name": name,
                "value": int(value),
                "attributes": dict(attributes or {}),
                "timestamp_ms": now_ms(),
            }
        )

    def events(self) -> list[TelemetryEvent]:
        return list(self._events)

    def spans(self, name: str | None = None) -> list[dict[str, Any]]:
        """
        Return closed span records.

        Args:
            name: Optional span name filter.
        """
        if name is None:
            return list(self._spans_closed)
        return [s for s in self._spans_closed if s["name"] == name]

    def counters(self, name: str | None = None) -> list[dict[str, Any]]:
        if name is None:
            return list(self._counters)
        return [c for c in self._counters if c["name"] == name]


def now_ms() -> int:
    """
    Return current Unix epoch time in milliseconds.

    Returns:
        Integer epoch timestamp in milliseconds.
    """
    return int(time.time() * 1000)
