"""
Runner configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean environment variable with common truthy values."""
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


@dataclass(frozen=True, slots=True)
class RunnerConfig:
    """
    Runtime configuration for runner behavior and safety defaults.

    Attributes:
        max_iterations: Upper bound on model queries per turn.
        abort_message: Response text of an aborted turn.
        continue_placeholder: Query substituted between turns by
            `run_conversation`.
        tool_timeout_s: Optional per-call timeout handed to the tool registry.
            The core itself imposes no timeout.
        cancel_tools_on_abort: Cancel the losing tool task when an abort wins
            the race, instead of letting it run to completion unobserved.
        tool_output_max_chars: Max tool output characters forwarded to the model.
    """

    max_iterations: int = 50
    abort_message: str = "Operation aborted by user"
    continue_placeholder: str = "Continue"
    tool_timeout_s: float | None = None
    cancel_tools_on_abort: bool = False
    tool_output_max_chars: int = 12_000

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        if self.tool_output_max_chars < 1:
            raise ValueError("tool_output_max_chars must be >= 1")

    @staticmethod
    def from_env() -> "RunnerConfig":
        tool_timeout = os.getenv("TURNLOOP_TOOL_TIMEOUT_S")
        return RunnerConfig(
            max_iterations=int(os.getenv("TURNLOOP_MAX_ITERATIONS", "50")),
            abort_message=os.getenv("TURNLOOP_ABORT_MESSAGE", "Operation aborted by user"),
            continue_placeholder=os.getenv("TURNLOOP_CONTINUE_PLACEHOLDER", "Continue"),
            tool_timeout_s=float(tool_timeout) if tool_timeout else None,
            cancel_tools_on_abort=_env_bool("TURNLOOP_CANCEL_TOOLS_ON_ABORT", False),
            tool_output_max_chars=int(os.getenv("TURNLOOP_TOOL_OUTPUT_MAX_CHARS", "12000")),
        )
