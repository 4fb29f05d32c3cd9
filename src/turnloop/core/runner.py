"""
Public entry point for running turns against a session.

`AgentRunner.process_turn` validates the request, consults the abort registry,
drives the turn and folds every outcome (success, error, abort) into one
`TurnResult`. It never raises for turn-level failures.
"""

from __future__ import annotations

import structlog

from ..agents.errors import AgentConfigurationError
from ..agents.types import ConversationResult, TurnResult
from ..execution.base import ExecutionAdapter
from ..llms.client import ModelClient
from ..tools.registry import ToolRegistry
from .abort import AbortRegistry
from .config import RunnerConfig
from .driver import ConversationDriver, DriverProgress
from .events import AgentEvent, EventChannel
from .permissions import PermissionManager
from .session import Session
from .telemetry import NullTelemetrySink, TelemetrySink
from .tool_call import ToolCallExecutor


logger = structlog.get_logger().bind(component="agent_runner")

MISSING_SESSION_ID = "Missing session id in session state"


class AgentRunner:
    """
    Runs turns for any number of sessions.

    Sessions may be processed concurrently; they share only the abort
    registry. Turns of one session must be serialized by the caller.
    """

    def __init__(
        self,
        *,
        model: ModelClient | None,
        tools: ToolRegistry | None,
        execution: ExecutionAdapter | None,
        permissions: PermissionManager | None = None,
        aborts: AbortRegistry | None = None,
        events: EventChannel | None = None,
        config: RunnerConfig | None = None,
        telemetry: TelemetrySink | None = None,
        default_model: str | None = None,
    ) -> None:
        missing = [
            name
            for name, value in (("model", model), ("tools", tools), ("execution", execution))
            if value is None
        ]
        if missing:
            raise AgentConfigurationError(
                f"AgentRunner requires collaborators: {', '.join(missing)}"
            )

        self.model = model
        self.tools = tools
        self.execution = execution
        self.permissions = permissions
        self.config = config or RunnerConfig()
        self.telemetry = telemetry or NullTelemetrySink()
        self.events = events or EventChannel()
        self.aborts = aborts or AbortRegistry(events=self.events, telemetry=self.telemetry)
        self.driver = ConversationDriver(
            model=model,
            tools=tools,
            executor=ToolCallExecutor(
                cancel_on_abort=self.config.cancel_tools_on_abort,
                telemetry=self.telemetry,
                output_max_chars=self.config.tool_output_max_chars,
            ),
            permissions=permissions,
            execution=execution,
            config=self.config,
            telemetry=self.telemetry,
            default_model=default_model,
        )

    def request_abort(self, session_id: str) -> None:
        """Flag `session_id` and cancel its in-flight turn, if any."""
        self.aborts.request_abort(session_id)

    async def process_turn(self, query: str, session: Session) -> TurnResult:
        session_id = session.id
        if not session_id:
            logger.error("turn.rejected", reason=MISSING_SESSION_ID)
            return TurnResult(error=MISSING_SESSION_ID, done=True, session=session)

        if self.aborts.is_aborted(session_id):
            logger.info("turn.short_circuit_abort", session_id=session_id)
            try:
                self.telemetry.increment_counter("agent.turns.aborted", attributes={"path": "pending_flag"})
                return TurnResult(
                    response=self.config.abort_message,
                    aborted=True,
                    done=True,
                    session=session,
                )
            finally:
                self.aborts.clear(session_id)
                session.rotate_cancellation()

        token = session.ensure_cancellation()
        self.aborts.bind(session_id, token)

        last = session.context_window.last()
        if last is None or last.role != "user":
            session.context_window.add_user(query)

        progress = DriverProgress()
        span = self.telemetry.start_span("agent.turn", attributes={"session_id": session_id})
        try:
            result = await self.driver.run(session, progress)

            if result.aborted:
                self.aborts.clear(session_id)
                session.rotate_cancellation()
                self.telemetry.increment_counter("agent.turns.aborted", attributes={"path": "in_flight"})
                logger.info("turn.aborted", session_id=session_id, iterations=result.iterations)

            response = self.config.abort_message if result.aborted else result.response
            self.events.publish(
                AgentEvent(type="processing_completed", session_id=session_id, response=response)
            )
            self.telemetry.end_span(
                span,
                status="aborted" if result.aborted else "ok",
                attributes={"iterations": result.iterations, "tool_calls": len(result.tool_results)},
            )
            return TurnResult(
                response=response,
                aborted=result.aborted,
                tool_results=list(result.tool_results),
                iterations=result.iterations,
                done=True,
                session=session,
            )
        except Exception as e:
            logger.error("turn.failed", session_id=session_id, error=str(e), error_type=type(e).__name__)
            self.telemetry.end_span(span, status="error", error=str(e))
            return TurnResult(
                error=str(e),
                aborted=self.aborts.is_aborted(session_id),
                tool_results=list(progress.tool_results),
                iterations=progress.iterations,
                done=True,
                session=session,
            )
        finally:
            self.aborts.unbind(session_id, token)

    async def run_conversation(
        self,
        initial_query: str,
        session: Session | None = None,
    ) -> ConversationResult:
        """
        Loop `process_turn` until a turn reports `done` or fails.

        Intentionally minimal: there is no interactive input source, so
        `RunnerConfig.continue_placeholder` stands in for the next user query.
        Every turn currently reports `done`, so one turn is run.
        """
        session = session or Session()
        query = initial_query
        responses: list[str] = []
        turns: list[TurnResult] = []

        while True:
            result = await self.process_turn(query, session)
            turns.append(result)

            if result.error is not None:
                responses.append(f"Error: {result.error}")
                break
            if result.response:
                responses.append(result.response)
            if result.done:
                break
            query = self.config.continue_placeholder

        return ConversationResult(responses=responses, turns=turns, session=session)
