from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Model-client contract consumed by the conversation driver, plus a scripted
in-process client for tests and offline runs.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Protocol, Sequence, Union

from .errors import LLMError
from .types import LLMRequest, LLMResponse


class ModelClient(Protocol):
    """
    Opaque "send context, receive text-or-tool-requests" capability.

    Implementations own the wire protocol. The driver only relies on
    `LLMResponse.text` and `LLMResponse.tool_calls`.
    """

    async def chat(self, req: LLMRequest) -> LLMResponse:
        """
        Send the full conversation log and configuration to the model.

        Args:
            req: Request carrying messages, tool definitions and metadata.

        Returns:
            Normalized response with final text or tool calls.
        """
        ...


ScriptStep = Union[
    LLMResponse,
    Exception,
    Callable[[LLMRequest], Union[LLMResponse, Awaitable[LLMResponse]]],
]


@dataclass(slots=True)
class ScriptedModelClient:
    """
    Deterministic model client that replays a fixed script of responses.

    Each `chat` call consumes one step. A step may be an `LLMResponse`, an
    exception to raise, or a callable computing the response from the request.
    Every request is kept for assertions.

    Attributes:
        steps: Ordered script.
        delay_s: Optional sleep before each answer, to widen race windows.
    """

    steps: Sequence[ScriptStep] = ()
    delay_s: float = 0.0
    _queue: list[ScriptStep] = field(default_factory=list, init=False, repr=False)
    _requests: list[LLMRequest] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        self._queue = list(self.steps)

    async def chat(self, req: LLMRequest) -> LLMResponse:
        self._requests.append(req)
        if not self._queue:
            raise LLMError("ScriptedModelClient script exhausted")
        step = self._queue.pop(0)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if isinstance(step, Exception):
            raise step
        if isinstance(step, LLMResponse):
            return step
        maybe = step(req)
        if inspect.isawaitable(maybe):
            return await maybe
        return maybe

    @property
    def calls(self) -> int:
        return len(self._requests)

    def requests(self) -> list[LLMRequest]:
        """Return a snapshot of every request received so far."""
        return list(self._requests)

    def remaining(self) -> int:
        return len(self._queue)
