"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Tool definitions, the decorator that builds them and the registry that runs them.
"""

from .base import Tool, ToolContext, ToolResult, ToolSpec, as_async
from .decorator import tool
from .errors import (
    ToolAlreadyRegisteredError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolPermissionError,
    ToolTimeoutError,
    ToolValidationError,
)
from .prebuilts import build_execution_tools
from .registry import ToolCallRecord, ToolRegistry

__all__ = [
    "Tool",
    "ToolContext",
    "ToolResult",
    "ToolSpec",
    "as_async",
    "tool",
    "ToolRegistry",
    "ToolCallRecord",
    "build_execution_tools",
    "ToolError",
    "ToolValidationError",
    "ToolAlreadyRegisteredError",
    "ToolExecutionError",
    "ToolTimeoutError",
    "ToolNotFoundError",
    "ToolPermissionError",
]
