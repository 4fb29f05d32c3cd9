"""
Agent-layer errors and result types.
"""

from .errors import (
    AgentCancelledError,
    AgentConfigurationError,
    AgentError,
    AgentExecutionError,
    AgentLoopLimitError,
)
from .types import ConversationResult, ToolResultEntry, TurnResult

__all__ = [
    "AgentError",
    "AgentConfigurationError",
    "AgentExecutionError",
    "AgentLoopLimitError",
    "AgentCancelledError",
    "ToolResultEntry",
    "TurnResult",
    "ConversationResult",
]
