"""
Agent-layer error taxonomy.
"""

from __future__ import annotations


class AgentError(Exception):
    """Base exception for all agent-runtime failures."""
    pass


class AgentConfigurationError(AgentError):
    """
    Raised when agent configuration is invalid.

    Typical cases:
    - missing model client, tool registry or execution adapter
    - invalid config values
    """
    pass


class AgentExecutionError(AgentError):
    """Raised for runtime execution failures not tied to configuration."""
    pass


class AgentLoopLimitError(AgentExecutionError):
    """Raised when a turn exceeds the configured iteration limit."""
    pass


class AgentCancelledError(AgentExecutionError):
    """Raised when a turn is cancelled by the caller."""
    pass
