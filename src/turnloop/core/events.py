"""
Explicit notification channel for runtime lifecycle events.

Listeners are passed in by the caller; there is no process-global bus.
"""

from __future__ import annotations

import inspect
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Protocol

import structlog

from .telemetry import now_ms


AgentEventType = Literal["session_abort_requested", "processing_completed"]

logger = structlog.get_logger().bind(component="event_channel")


@dataclass(frozen=True, slots=True)
class AgentEvent:
    """
    Lifecycle notification published on an `EventChannel`.

    Attributes:
        type: Event kind.
        session_id: Session the event belongs to.
        response: Final response text for `processing_completed`.
        timestamp_ms: Epoch milliseconds at publication time.
    """

    type: AgentEventType
    session_id: str
    response: str | None = None
    timestamp_ms: int = field(default_factory=now_ms)


class EventListener(Protocol):
    def __call__(self, event: AgentEvent) -> Any:
        ...


class EventChannel:
    """
    Publish/subscribe channel shared by the abort registry and runners.

    `publish` is synchronous so it can be called from any thread. Coroutine
    listeners are not awaited here; subscribe a plain callable that schedules
    its own work instead.
    """

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            Callable that removes the listener again.
        """
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def publish(self, event: AgentEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                maybe = listener(event)
            except Exception as e:
                # a broken listener must not fail the turn that published
                logger.warning(
                    "event_listener.failed",
                    event_type=event.type,
                    session_id=event.session_id,
                    error=str(e),
                )
                continue
            if inspect.isawaitable(maybe):
                logger.warning(
                    "event_listener.async_ignored",
                    event_type=event.type,
                    listener=getattr(listener, "__name__", repr(listener)),
                )
                close = getattr(maybe, "close", None)
                if close is not None:
                    close()

    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)


@dataclass(slots=True)
class InMemoryEventRecorder:
    """Listener that stores every event it receives, for tests and debugging."""

    _events: list[AgentEvent] = field(default_factory=list)

    def __call__(self, event: AgentEvent) -> None:
        self._events.append(event)

    def events(self, type: AgentEventType | None = None) -> list[AgentEvent]:
        if type is None:
            return list(self._events)
        return [e for e in self._events if e.type == type]
