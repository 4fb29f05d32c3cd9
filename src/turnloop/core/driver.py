"""
Turn-loop state machine.

    querying -> done
    querying -> executing_tools -> querying
    any      -> aborted

`done` and `aborted` are terminal. Tool calls of one model response run
sequentially so each tool result lands right after the entry that requested it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from ..agents.errors import AgentLoopLimitError
from ..agents.types import ToolResultEntry
from ..execution.base import ExecutionAdapter
from ..llms.client import ModelClient
from ..llms.types import LLMRequest, LLMResponse, ToolCall
from ..tools.base import ToolContext
from ..tools.errors import ToolExecutionError, ToolPermissionError
from ..tools.registry import ToolRegistry
from .config import RunnerConfig
from .permissions import PermissionManager
from .session import Session, session_metadata
from .telemetry import NullTelemetrySink, TelemetrySink
from .tool_call import ToolCallExecutor, ToolInvoker


logger = structlog.get_logger().bind(component="conversation_driver")

DriverState = Literal["querying", "executing_tools", "done", "aborted"]

_TRANSITIONS: dict[DriverState, set[DriverState]] = {
    "querying": {"executing_tools", "done", "aborted"},
    "executing_tools": {"querying", "aborted"},
    "done": set(),
    "aborted": set(),
}


@dataclass(frozen=True, slots=True)
class DriverResult:
    """
    Outcome of one driven turn.

    Attributes:
        response: Final assistant text; on abort, whatever text preceded it.
        tool_results: Records accumulated across every iteration.
        aborted: Whether the loop stopped on cancellation.
        iterations: Number of model queries issued.
        state: Terminal state reached.
    """

    response: str | None
    tool_results: list[ToolResultEntry] = field(default_factory=list)
    aborted: bool = False
    iterations: int = 0
    state: DriverState = "done"


@dataclass(slots=True)
class DriverProgress:
    """
    Caller-owned view of a turn in progress.

    The driver appends records to `tool_results` and bumps `iterations` as it
    goes, so a caller that catches an exception from `run` still sees what
    already happened.
    """

    tool_results: list[ToolResultEntry] = field(default_factory=list)
    iterations: int = 0


class ConversationDriver:
    """
    Alternates between querying the model and executing requested tools.

    The driver observes the session's cancellation token at the top of every
    iteration and through the executor during tool calls. It never issues a
    model query after an abort has been observed.
    """

    def __init__(
        self,
        *,
        model: ModelClient,
        tools: ToolRegistry,
        executor: ToolCallExecutor | None = None,
        permissions: PermissionManager | None = None,
        execution: ExecutionAdapter | None = None,
        config: RunnerConfig | None = None,
        telemetry: TelemetrySink | None = None,
        default_model: str | None = None,
    ) -> None:
        self.model = model
        self.tools = tools
        self.config = config or RunnerConfig()
        self.telemetry = telemetry or NullTelemetrySink()
        self.executor = executor or ToolCallExecutor(
            cancel_on_abort=self.config.cancel_tools_on_abort,
            telemetry=self.telemetry,
            output_max_chars=self.config.tool_output_max_chars,
        )
        self.permissions = permissions
        self.execution = execution
        self.default_model = default_model

    async def run(self, session: Session, progress: DriverProgress | None = None) -> DriverResult:
        """
        Drive the session until a final answer or an abort.

        Args:
            session: Session whose log and token drive the turn.
            progress: Optional record of partial results, kept up to date
                while the turn runs.

        Raises:
            AgentLoopLimitError: When `max_iterations` queries did not finish the turn.
        """
        progress = progress if progress is not None else DriverProgress()
        results = progress.tool_results
        iterations = progress.iterations
        state: DriverState = "querying"
        last_text: str | None = None
        tool_defs = self.tools.to_openai_function_tools() or None

        while True:
            token = session.cancellation
            if token is not None and token.cancelled:
                state = self._transition(session, state, "aborted")
                return DriverResult(
                    response=last_text,
                    tool_results=results,
                    aborted=True,
                    iterations=iterations,
                    state=state,
                )

            if iterations >= self.config.max_iterations:
                raise AgentLoopLimitError(
                    f"Turn exceeded max_iterations={self.config.max_iterations}"
                )
            iterations += 1
            progress.iterations = iterations

            req = LLMRequest(
                model=session.config.model or self.default_model or "",
                messages=session.context_window.messages(),
                tools=tool_defs,
                tool_choice="auto" if tool_defs else None,
                metadata={**session_metadata(session), "iteration": iterations},
            )
            resp = await self._query(req, session, iterations)
            last_text = resp.text or last_text

            if not resp.tool_calls:
                session.context_window.add_assistant(resp.text)
                token = session.cancellation
                if token is not None and token.cancelled:
                    # abort arrived while the final answer was in flight
                    state = self._transition(session, state, "aborted")
                    return DriverResult(
                        response=resp.text,
                        tool_results=results,
                        aborted=True,
                        iterations=iterations,
                        state=state,
                    )
                state = self._transition(session, state, "done")
                return DriverResult(
                    response=resp.text,
                    tool_results=results,
                    aborted=False,
                    iterations=iterations,
                    state=state,
                )

            state = self._transition(session, state, "executing_tools")
            session.context_window.add_assistant(resp.text, resp.tool_calls)

            for index, call in enumerate(resp.tool_calls):
                ctx = ToolContext(
                    session_id=session.id,
                    cancellation=session.cancellation,
                    execution=self.execution,
                    request_id=f"{session.id}:{iterations}:{index}",
                )
                outcome = await self.executor.execute(
                    call,
                    session,
                    results,
                    self._invoker(call, session),
                    ctx,
                )
                if outcome.aborted:
                    for skipped in resp.tool_calls[index + 1 :]:
                        self.executor.skip(skipped, session, results)
                    state = self._transition(session, state, "aborted")
                    return DriverResult(
                        response=last_text,
                        tool_results=results,
                        aborted=True,
                        iterations=iterations,
                        state=state,
                    )

            state = self._transition(session, state, "querying")

    async def _query(self, req: LLMRequest, session: Session, iteration: int) -> LLMResponse:
        span = self.telemetry.start_span(
            "agent.llm.call",
            attributes={"session_id": session.id, "model": req.model, "iteration": iteration},
        )
        try:
            resp = await self.model.chat(req)
        except Exception as e:
            self.telemetry.end_span(span, status="error", error=str(e))
            raise
        self.telemetry.end_span(
            span,
            status="ok",
            attributes={"tool_calls": len(resp.tool_calls)},
        )
        return resp

    def _invoker(self, call: ToolCall, session: Session) -> ToolInvoker:
        async def _invoke(ctx: ToolContext) -> Any:
            if self.permissions is not None:
                allowed = await self.permissions.is_allowed(call.tool_name, call.arguments, session.config)
                if not allowed:
                    raise ToolPermissionError(f"Permission denied for tool '{call.tool_name}'")

            res = await self.tools.call(
                call.tool_name,
                dict(call.arguments),
                ctx=ctx,
                timeout=self.config.tool_timeout_s,
                tool_call_id=call.id,
            )
            if not res.success:
                raise ToolExecutionError(res.error_message or f"Tool '{call.tool_name}' failed")
            return res.output

        return _invoke

    def _transition(self, session: Session, current: DriverState, target: DriverState) -> DriverState:
        if target not in _TRANSITIONS[current]:
            raise RuntimeError(f"Invalid driver transition {current} -> {target}")
        logger.debug("driver.transition", session_id=session.id, source=current, target=target)
        return target
