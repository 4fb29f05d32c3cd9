"""
Pluggable permission collaborators consulted before every tool invocation.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Protocol

import structlog

from ..llms.types import JSONObject
from .session import SessionConfig


logger = structlog.get_logger().bind(component="permissions")


class PermissionHandler(Protocol):
    """
    Approval policy or UI.

    Implementations may be sync or async; the manager awaits awaitable results.
    """

    def request_approval(self, tool_id: str, args: JSONObject) -> bool | Awaitable[bool]:
        """
        Decide whether one tool call may run.

        Args:
            tool_id: Name of the requested tool.
            args: Arguments the model supplied.

        Returns:
            `True` to allow the call.
        """
        ...


@dataclass(slots=True)
class HeadlessPermissionHandler:
    """
    Non-blocking handler for autonomous use.

    Attributes:
        approve: Immediate decision returned for every request.
    """

    approve: bool = False

    async def request_approval(self, tool_id: str, args: JSONObject) -> bool:
        _ = tool_id
        _ = args
        return self.approve


@dataclass(slots=True)
class InMemoryPermissionHandler:
    """
    Deterministic handler for tests and local development.

    Decisions are looked up per tool; every request is stored for assertions.
    """

    decisions: dict[str, bool] = field(default_factory=dict)
    default: bool = False
    _requests: list[tuple[str, JSONObject]] = field(default_factory=list)

    async def request_approval(self, tool_id: str, args: JSONObject) -> bool:
        self._requests.append((tool_id, dict(args)))
        return self.decisions.get(tool_id, self.default)

    def set_decision(self, tool_id: str, approved: bool) -> None:
        self.decisions[tool_id] = approved

    def requests(self) -> list[tuple[str, JSONObject]]:
        return list(self._requests)


class PermissionManager:
    """
    Applies session permission settings before delegating to a handler.

    Order: `permission_mode="auto"` approves everything, tools listed in
    `allowed_tools` are approved without asking, otherwise the handler
    decides. Without a handler the call is denied.
    """

    def __init__(self, handler: PermissionHandler | None = None) -> None:
        self.handler = handler

    async def is_allowed(self, tool_id: str, args: JSONObject, config: SessionConfig) -> bool:
        if config.permission_mode == "auto":
            return True
        if tool_id in config.allowed_tools:
            return True
        if self.handler is None:
            logger.info("permission.denied_no_handler", tool_id=tool_id)
            return False

        decision: Any = self.handler.request_approval(tool_id, args)
        if inspect.isawaitable(decision):
            decision = await decision
        approved = bool(decision)
        if not approved:
            logger.info("permission.denied", tool_id=tool_id)
        return approved
