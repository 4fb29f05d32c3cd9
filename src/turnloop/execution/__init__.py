"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Interchangeable command-execution backends and the factory that selects one.
"""

from .base import CommandResult, DirectoryEntry, ExecutionAdapter, ExecutionAdapterType
from .config import ContainerOptions, ExecutionConfig, RemoteSandboxOptions, parse_backend
from .container import ContainerExecutionAdapter, ContainerInfo, ContainerManager
from .errors import (
    CommandExecutionError,
    ExecutionBackendUnavailableError,
    ExecutionConfigurationError,
    ExecutionError,
)
from .factory import AdapterSelection, create_execution_adapter
from .local import LocalExecutionAdapter
from .remote import RemoteSandboxExecutionAdapter

__all__ = [
    "CommandResult",
    "DirectoryEntry",
    "ExecutionAdapter",
    "ExecutionAdapterType",
    "ExecutionConfig",
    "ContainerOptions",
    "RemoteSandboxOptions",
    "parse_backend",
    "ContainerManager",
    "ContainerInfo",
    "ContainerExecutionAdapter",
    "LocalExecutionAdapter",
    "RemoteSandboxExecutionAdapter",
    "AdapterSelection",
    "create_execution_adapter",
    "ExecutionError",
    "ExecutionConfigurationError",
    "ExecutionBackendUnavailableError",
    "CommandExecutionError",
]
