"""
Core runtime exports.
"""

from .abort import AbortRegistry, CancellationToken
from .builder import BuiltRunner, build_agent_runner
from .config import RunnerConfig
from .driver import ConversationDriver, DriverProgress, DriverResult, DriverState
from .events import AgentEvent, AgentEventType, EventChannel, InMemoryEventRecorder
from .permissions import (
    HeadlessPermissionHandler,
    InMemoryPermissionHandler,
    PermissionHandler,
    PermissionManager,
)
from .runner import MISSING_SESSION_ID, AgentRunner
from .session import ContextWindow, PermissionMode, Session, SessionConfig
from .telemetry import (
    InMemoryTelemetrySink,
    NullTelemetrySink,
    TelemetryEvent,
    TelemetrySink,
    TelemetrySpan,
)
from .tool_call import ToolCallExecutor, ToolOutcome

__all__ = [
    "AgentRunner",
    "MISSING_SESSION_ID",
    "BuiltRunner",
    "build_agent_runner",
    "RunnerConfig",
    "ConversationDriver",
    "DriverResult",
    "DriverProgress",
    "DriverState",
    "ToolCallExecutor",
    "ToolOutcome",
    "AbortRegistry",
    "CancellationToken",
    "AgentEvent",
    "AgentEventType",
    "EventChannel",
    "InMemoryEventRecorder",
    "Session",
    "SessionConfig",
    "ContextWindow",
    "PermissionMode",
    "PermissionHandler",
    "PermissionManager",
    "HeadlessPermissionHandler",
    "InMemoryPermissionHandler",
    "TelemetrySink",
    "TelemetryEvent",
    "TelemetrySpan",
    "NullTelemetrySink",
    "InMemoryTelemetrySink",
]
