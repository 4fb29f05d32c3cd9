"""
Single tool invocation with guaranteed recording.

`ToolCallExecutor.execute` races the invocation against the session's
cancellation token and, whatever happens, appends exactly one tool result to
the conversation log (when the call has a correlation id) and exactly one
`ToolResultEntry` to the caller's result list.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Literal

import structlog

from ..agents.types import ToolResultEntry
from ..llms.normalization import render_tool_payload
from ..llms.types import ToolCall
from ..tools.base import ToolContext
from .abort import CancellationToken
from .session import Session
from .telemetry import NullTelemetrySink, TelemetrySink


logger = structlog.get_logger().bind(component="tool_call_executor")

ToolOutcomeKind = Literal["success", "error", "aborted"]
ToolInvoker = Callable[[ToolContext], Awaitable[Any]]

ABORTED_PAYLOAD: dict[str, Any] = {"aborted": True}


@dataclass(frozen=True, slots=True)
class ToolOutcome:
    """
    Three-way result of one tool invocation.

    Attributes:
        kind: `success`, `error` or `aborted`.
        value: Payload recorded for the call: the tool output, `{"error": ...}`
            or `{"aborted": True}`.
        error: Error message for `error` outcomes.
    """

    kind: ToolOutcomeKind
    value: Any = None
    error: str | None = None

    @property
    def aborted(self) -> bool:
        return self.kind == "aborted"

    @property
    def ok(self) -> bool:
        return self.kind == "success"

    @staticmethod
    def success(value: Any) -> "ToolOutcome":
        return ToolOutcome(kind="success", value=value)

    @staticmethod
    def failure(exc: BaseException) -> "ToolOutcome":
        message = str(exc)
        return ToolOutcome(kind="error", value={"error": message}, error=message)

    @staticmethod
    def abort() -> "ToolOutcome":
        return ToolOutcome(kind="aborted", value=dict(ABORTED_PAYLOAD))


class ToolCallExecutor:
    """
    Runs one tool call and records its outcome.

    Cancellation is cooperative: when the token wins the race the executor
    returns `aborted` right away while the invocation keeps running in the
    background. With `cancel_on_abort=True` the losing task is cancelled
    instead.
    """

    def __init__(
        self,
        *,
        cancel_on_abort: bool = False,
        telemetry: TelemetrySink | None = None,
        output_max_chars: int = 12_000,
    ) -> None:
        self.cancel_on_abort = cancel_on_abort
        self.telemetry = telemetry or NullTelemetrySink()
        self.output_max_chars = output_max_chars

    async def execute(
        self,
        call: ToolCall,
        session: Session,
        results: list[ToolResultEntry],
        invoke: ToolInvoker,
        ctx: ToolContext | None = None,
    ) -> ToolOutcome:
        """
        Invoke `invoke` for `call` and record the outcome.

        Args:
            call: Model-issued tool call.
            session: Session whose log receives the tool result.
            results: Caller-owned result list; receives one entry.
            invoke: Async function running the tool for a given context.
            ctx: Execution context; its `cancellation` token drives the race.

        Returns:
            The outcome. Callers check `outcome.aborted` to stop the turn.

        Raises:
            asyncio.CancelledError: If this coroutine itself is cancelled.
                An aborted entry is recorded before the error propagates.
        """
        ctx = ctx or ToolContext(session_id=session.id, cancellation=session.cancellation)
        span = self.telemetry.start_span(
            "agent.tool.call",
            attributes={"tool_name": call.tool_name, "session_id": session.id},
        )

        with session.tool_execution_scope() as execution_id:
            tool_ctx = replace(
                ctx,
                tool_execution_id=execution_id,
                session_id=ctx.session_id or session.id,
            )
            try:
                outcome = await self._run(invoke, tool_ctx, ctx.cancellation)
            except asyncio.CancelledError:
                self._record(call, session, results, ToolOutcome.abort())
                self._finish(span, call, ToolOutcome.abort())
                raise
            self._record(call, session, results, outcome)

        self._finish(span, call, outcome)
        return outcome

    def skip(self, call: ToolCall, session: Session, results: list[ToolResultEntry]) -> ToolOutcome:
        """
        Record `call` as aborted without invoking it.

        Used for calls of a batch that follow an aborted one, so every
        `tool_use` in the log still gets its result.
        """
        outcome = ToolOutcome.abort()
        self._record(call, session, results, outcome)
        self.telemetry.increment_counter(
            "agent.tool.calls",
            attributes={"tool_name": call.tool_name, "outcome": "skipped"},
        )
        return outcome

    async def _run(
        self,
        invoke: ToolInvoker,
        ctx: ToolContext,
        token: CancellationToken | None,
    ) -> ToolOutcome:
        if token is not None and token.cancelled:
            return ToolOutcome.abort()

        async def _call() -> Any:
            return await invoke(ctx)

        task = asyncio.ensure_future(_call())

        if token is None:
            try:
                value = await task
            except asyncio.CancelledError:
                if task.cancelled() and not _current_task_cancelling():
                    return ToolOutcome.abort()
                raise
            except Exception as e:
                return ToolOutcome.failure(e)
            return ToolOutcome.success(value)

        waiter = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            waiter.cancel()
            self._abandon(task)
            raise
        finally:
            if not waiter.done():
                waiter.cancel()

        # a result that settled in the same tick as the abort still wins
        if task in done:
            return _settle(task)

        logger.info("tool_call.aborted", tool_execution_id=ctx.tool_execution_id)
        self._abandon(task)
        return ToolOutcome.abort()

    def _abandon(self, task: asyncio.Future[Any]) -> None:
        if task.done():
            _retrieve(task)
            return
        if self.cancel_on_abort:
            task.cancel()
        task.add_done_callback(_retrieve)

    def _record(
        self,
        call: ToolCall,
        session: Session,
        results: list[ToolResultEntry],
        outcome: ToolOutcome,
    ) -> None:
        if call.id:
            content = render_tool_payload(outcome.value)
            if len(content) > self.output_max_chars:
                content = content[: self.output_max_chars]
            session.context_window.add_tool_result(call.id, content, is_error=outcome.kind == "error")
        results.append(
            ToolResultEntry(
                tool_id=call.tool_name,
                args=dict(call.arguments),
                result=outcome.value,
                tool_use_id=call.id,
                aborted=outcome.aborted,
            )
        )

    def _finish(self, span: Any, call: ToolCall, outcome: ToolOutcome) -> None:
        status = "ok" if outcome.ok else outcome.kind
        self.telemetry.end_span(span, status=status, error=outcome.error)
        self.telemetry.increment_counter(
            "agent.tool.calls",
            attributes={"tool_name": call.tool_name, "outcome": outcome.kind},
        )


def _settle(task: asyncio.Future[Any]) -> ToolOutcome:
    if task.cancelled():
        return ToolOutcome.abort()
    exc = task.exception()
    if exc is not None:
        return ToolOutcome.failure(exc)
    return ToolOutcome.success(task.result())


def _retrieve(task: asyncio.Future[Any]) -> None:
    # keeps orphaned failures out of the "exception was never retrieved" warning
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("tool_call.orphan_failed", error=str(exc))


def _current_task_cancelling() -> bool:
    current = asyncio.current_task()
    return current is not None and current.cancelling() > 0
