"""
Result and record types produced by the agent runtime.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..llms.types import JSONObject
from .errors import AgentCancelledError, AgentExecutionError

if TYPE_CHECKING:
    from ..core.session import Session


@dataclass(frozen=True, slots=True)
class ToolResultEntry:
    """
    Record of one tool invocation, produced exactly once per call.

    Attributes:
        tool_id: Name of the invoked tool.
        args: Arguments the model supplied.
        result: Tool output, `{"aborted": True}` on abort, or `{"error": message}`
            on failure. For exceptions raised inside a registered tool the
            message is the registry's wrapped text,
            `"Error executing tool '<name>': <exception>"`, not the bare
            exception message. Permission denials and unknown tools carry
            their own messages.
        tool_use_id: Correlation id of the originating tool call, if any.
        aborted: Whether cancellation won the race against the invocation.
    """

    tool_id: str
    args: JSONObject
    result: Any
    tool_use_id: str | None = None
    aborted: bool = False


@dataclass(frozen=True, slots=True)
class TurnResult:
    """
    Normalized outcome of one `AgentRunner.process_turn` call.

    Exactly one of `response`/`error` is normally set; an aborted turn carries
    the fixed abort message as `response`.

    Attributes:
        response: Final assistant text, or the abort message.
        error: Error message when the turn failed.
        aborted: Whether the turn stopped because of cancellation.
        tool_results: Records from every iteration of the turn.
        iterations: Number of model queries issued.
        done: Whether the conversation needs no further turn.
        session: The session the turn ran against.
    """

    response: str | None = None
    error: str | None = None
    aborted: bool = False
    tool_results: list[ToolResultEntry] = field(default_factory=list)
    iterations: int = 0
    done: bool = True
    session: Session | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.aborted

    def raise_for_status(self) -> "TurnResult":
        """
        Re-raise a failed or aborted turn as an exception.

        Raises:
            AgentCancelledError: If the turn was aborted.
            AgentExecutionError: If the turn carries an error.
        """
        if self.aborted:
            raise AgentCancelledError(self.response or "Turn aborted")
        if self.error is not None:
            raise AgentExecutionError(self.error)
        return self


@dataclass(frozen=True, slots=True)
class ConversationResult:
    """
    Outcome of `AgentRunner.run_conversation`.

    Attributes:
        responses: Response texts in turn order; errors appear as `"Error: ..."`.
        turns: Individual turn results.
        session: Session shared by every turn.
    """

    responses: list[str] = field(default_factory=list)
    turns: list[TurnResult] = field(default_factory=list)
    session: Session | None = None

    @property
    def final_response(self) -> str | None:
        return self.responses[-1] if self.responses else None
