"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Exception types raised by execution adapters and the adapter factory.
"""

from __future__ import annotations


class ExecutionError(Exception):
    """Base exception for all execution-backend errors."""

    pass


class ExecutionConfigurationError(ExecutionError):
    """Raised when a backend is requested without its required parameters."""

    pass


class ExecutionBackendUnavailableError(ExecutionError):
    """Raised when a backend cannot be reached or fails its health check."""

    pass


class CommandExecutionError(ExecutionError):
    """Raised when a command could not be run at all (not for non-zero exits)."""

    pass
