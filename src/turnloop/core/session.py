"""
Session state owned by the caller: conversation log, cancellation token,
current-tool marker and per-session configuration.
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Literal

from ..llms.types import JSONObject, Message, MessagePart, ToolCall
from .abort import CancellationToken


PermissionMode = Literal["auto", "interactive"]


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """
    Per-session settings sent along with every model query.

    Attributes:
        model: Model identity; the client default is used when `None`.
        permission_mode: `auto` approves every tool call without asking.
        allowed_tools: Tools approved without consulting the permission handler.
        caching_enabled: Ask the model client to mark prompt-cache breakpoints.
    """

    model: str | None = None
    permission_mode: PermissionMode = "interactive"
    allowed_tools: frozenset[str] = field(default_factory=frozenset)
    caching_enabled: bool = True


class ContextWindow:
    """
    Ordered conversation log for one session.

    Append-only during a turn. A tool result always directly follows the
    assistant entry carrying its `tool_use` part because the driver executes
    calls sequentially.
    """

    def __init__(self, messages: list[Message] | None = None) -> None:
        self._messages: list[Message] = list(messages or [])

    def __len__(self) -> int:
        return len(self._messages)

    def messages(self) -> list[Message]:
        return list(self._messages)

    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def add_user(self, text: str) -> Message:
        msg = Message(role="user", content=text)
        self._messages.append(msg)
        return msg

    def add_assistant(self, text: str, tool_calls: list[ToolCall] | None = None) -> Message:
        """
        Append an assistant entry.

        Calls without a correlation id are not represented as `tool_use`
        parts since no result could ever answer them.
        """
        if not tool_calls:
            msg = Message(role="assistant", content=text)
        else:
            parts: list[MessagePart] = []
            if text:
                parts.append({"type": "text", "text": text})
            for call in tool_calls:
                if call.id is None:
                    continue
                parts.append(
                    {
                        "type": "tool_use",
                        "id": call.id,
                        "name": call.tool_name,
                        "input": dict(call.arguments),
                    }
                )
            msg = Message(role="assistant", content=parts)
        self._messages.append(msg)
        return msg

    def add_tool_result(self, tool_use_id: str, content: str, *, is_error: bool = False) -> Message:
        part: MessagePart = {"type": "tool_result", "tool_use_id": tool_use_id, "content": content}
        if is_error:
            part["is_error"] = True
        msg = Message(role="tool", content=[part])
        self._messages.append(msg)
        return msg

    def tool_use_ids(self) -> list[str]:
        return [
            p["id"]
            for m in self._messages
            if m.role == "assistant"
            for p in m.parts()
            if p.get("type") == "tool_use"
        ]

    def tool_result_ids(self) -> list[str]:
        return [
            p["tool_use_id"]
            for m in self._messages
            if m.role == "tool"
            for p in m.parts()
            if p.get("type") == "tool_result"
        ]

    def clear(self) -> None:
        self._messages.clear()


@dataclass(slots=True)
class Session:
    """
    Caller-owned conversation state.

    At most one turn may be in flight per session; the runtime provides no
    lock, callers serialize turns.

    Attributes:
        id: Session identifier. Turns against a session without one fail.
        context_window: Conversation log sent to the model.
        cancellation: Token observed by the driver and the tool executor.
        current_tool_execution_id: Id of the tool invocation currently running.
        config: Model and permission settings.
    """

    id: str | None = field(default_factory=lambda: new_id("session"))
    context_window: ContextWindow = field(default_factory=ContextWindow)
    cancellation: CancellationToken | None = None
    current_tool_execution_id: str | None = None
    config: SessionConfig = field(default_factory=SessionConfig)

    def ensure_cancellation(self) -> CancellationToken:
        if self.cancellation is None:
            self.cancellation = CancellationToken()
        return self.cancellation

    def rotate_cancellation(self) -> CancellationToken:
        """Install a fresh token so a past cancellation cannot leak into the next turn."""
        self.cancellation = CancellationToken()
        return self.cancellation

    @contextmanager
    def tool_execution_scope(self) -> Iterator[str]:
        """
        Mark a tool invocation as current for the duration of the block.

        The previous marker is restored on every exit path, so nested scopes
        unwind correctly.
        """
        previous = self.current_tool_execution_id
        execution_id = new_id("toolexec")
        self.current_tool_execution_id = execution_id
        try:
            yield execution_id
        finally:
            self.current_tool_execution_id = previous


def session_metadata(session: Session) -> JSONObject:
    """Request metadata derived from the session configuration."""
    return {
        "session_id": session.id,
        "permission_mode": session.config.permission_mode,
        "caching_enabled": session.config.caching_enabled,
    }
