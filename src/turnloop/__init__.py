"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

turnloop: a cancellable agent turn loop with sandboxed execution backends.
"""

from .agents import ConversationResult, ToolResultEntry, TurnResult
from .core import (
    AbortRegistry,
    AgentRunner,
    CancellationToken,
    EventChannel,
    RunnerConfig,
    Session,
    SessionConfig,
    build_agent_runner,
)
from .execution import ExecutionConfig, create_execution_adapter
from .tools import ToolContext, ToolRegistry, tool

__all__ = [
    "AgentRunner",
    "build_agent_runner",
    "RunnerConfig",
    "Session",
    "SessionConfig",
    "AbortRegistry",
    "CancellationToken",
    "EventChannel",
    "ExecutionConfig",
    "create_execution_adapter",
    "ToolRegistry",
    "ToolContext",
    "tool",
    "TurnResult",
    "ToolResultEntry",
    "ConversationResult",
]
