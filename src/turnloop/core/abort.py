"""
Cooperative cancellation primitives.

`CancellationToken` is the per-session signal observed by the driver and the
tool call executor. `AbortRegistry` holds session-keyed abort flags shared by
every runner in the process; callers own its lifetime and may create isolated
instances.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Callable

import structlog

from .events import AgentEvent, EventChannel
from .telemetry import NullTelemetrySink, TelemetryEvent, TelemetrySink, now_ms


logger = structlog.get_logger().bind(component="abort_registry")


class CancellationToken:
    """
    One-shot, thread-safe cancellation signal.

    Once cancelled a token stays cancelled; rotate to a fresh token to start
    over. Waiters on any event loop are woken through
    `loop.call_soon_threadsafe`, so `cancel()` may be called from any thread.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None
        self._callbacks: list[Callable[[], None]] = []
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> bool:
        """
        Fire the signal.

        Returns:
            `True` if this call cancelled the token, `False` if it already was.
        """
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
            self._reason = reason
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for cb in callbacks:
            cb()
        return True

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Run `callback` once when the token is cancelled.

        The callback runs immediately when the token is already cancelled.

        Returns:
            Callable that detaches the callback if it has not fired yet.
        """
        with self._lock:
            fire_now = self._cancelled
            if not fire_now:
                self._callbacks.append(callback)
        if fire_now:
            callback()

        def _remove() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return _remove

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        if self._cancelled:
            return
        loop = asyncio.get_running_loop()
        fut: asyncio.Future[None] = loop.create_future()

        def _resolve() -> None:
            if not fut.done():
                fut.set_result(None)

        def _wake() -> None:
            loop.call_soon_threadsafe(_resolve)

        remove = self.add_callback(_wake)
        try:
            await fut
        finally:
            remove()


class AbortRegistry:
    """
    Session-keyed abort flags plus bound cancellation tokens.

    `request_abort` raises the flag, cancels the token currently bound to the
    session (if a turn is in flight) and publishes `session_abort_requested`.
    Flags never cross sessions; all state is guarded by one lock.
    """

    def __init__(
        self,
        *,
        events: EventChannel | None = None,
        telemetry: TelemetrySink | None = None,
    ) -> None:
        self._aborted: set[str] = set()
        self._tokens: dict[str, CancellationToken] = {}
        self._lock = threading.Lock()
        self._events = events
        self._telemetry = telemetry or NullTelemetrySink()

    def request_abort(self, session_id: str, *, reason: str | None = None) -> None:
        if not session_id:
            raise ValueError("session_id must be a non-empty string")
        with self._lock:
            self._aborted.add(session_id)
            token = self._tokens.get(session_id)

        logger.info("session.abort_requested", session_id=session_id, in_flight=token is not None)
        self._telemetry.record_event(
            TelemetryEvent(
                name="session.abort_requested",
                timestamp_ms=now_ms(),
                attributes={"session_id": session_id},
            )
        )
        if token is not None:
            token.cancel(reason or "abort requested")
        if self._events is not None:
            self._events.publish(AgentEvent(type="session_abort_requested", session_id=session_id))

    def is_aborted(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._aborted

    def clear(self, session_id: str) -> None:
        with self._lock:
            self._aborted.discard(session_id)

    def bind(self, session_id: str, token: CancellationToken) -> None:
        """
        Attach the token of the turn currently running for `session_id`.

        If the session is already flagged the token is cancelled right away.
        """
        with self._lock:
            self._tokens[session_id] = token
            flagged = session_id in self._aborted
        if flagged:
            token.cancel("abort requested")

    def unbind(self, session_id: str, token: CancellationToken | None = None) -> None:
        """Detach the bound token; with `token`, only if it is still the bound one."""
        with self._lock:
            current = self._tokens.get(session_id)
            if current is None:
                return
            if token is None or current is token:
                del self._tokens[session_id]

    def aborted_sessions(self) -> list[str]:
        with self._lock:
            return sorted(self._aborted)
