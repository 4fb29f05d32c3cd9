from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Backend selection settings for the execution adapter factory.
"""

import os
from dataclasses import dataclass, field

from .base import ExecutionAdapterType
from .errors import ExecutionConfigurationError


_BACKEND_ALIASES: dict[str, ExecutionAdapterType] = {
    "local": "local",
    "host": "local",
    "container": "container",
    "docker": "container",
    "remote_sandbox": "remote_sandbox",
    "remote": "remote_sandbox",
    "sandbox": "remote_sandbox",
    "e2b": "remote_sandbox",
}


def _env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean environment variable with common truthy values."""
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def parse_backend(value: str) -> ExecutionAdapterType:
    """
    Normalize a backend name, accepting the common aliases.

    Raises:
        ExecutionConfigurationError: For names that match no backend.
    """
    key = value.strip().lower().replace("-", "_")
    try:
        return _BACKEND_ALIASES[key]
    except KeyError as e:
        raise ExecutionConfigurationError(
            f"Unknown execution backend '{value}'. Expected one of: local, container, remote_sandbox."
        ) from e


@dataclass(frozen=True, slots=True)
class ContainerOptions:
    """
    Managed-container parameters.

    Attributes:
        project_root: Host directory mounted into the container. Required.
        compose_file: Compose file path, relative to `project_root` unless absolute.
        service_name: Compose service that runs commands.
        project_name: Compose project name; derived from `project_root` when unset.
    """

    project_root: str | None = None
    compose_file: str = "docker-compose.yml"
    service_name: str = "sandbox"
    project_name: str | None = None


@dataclass(frozen=True, slots=True)
class RemoteSandboxOptions:
    sandbox_id: str | None = None


@dataclass(frozen=True, slots=True)
class ExecutionConfig:
    backend: ExecutionAdapterType = "container"
    auto_fallback: bool = True
    container: ContainerOptions = field(default_factory=ContainerOptions)
    remote: RemoteSandboxOptions = field(default_factory=RemoteSandboxOptions)

    @staticmethod
    def from_env() -> "ExecutionConfig":
        return ExecutionConfig(
            backend=parse_backend(os.getenv("TURNLOOP_EXECUTION_BACKEND", "container")),
            auto_fallback=_env_bool("TURNLOOP_EXECUTION_AUTO_FALLBACK", True),
            container=ContainerOptions(
                project_root=os.getenv("TURNLOOP_PROJECT_ROOT") or None,
                compose_file=os.getenv("TURNLOOP_COMPOSE_FILE", "docker-compose.yml"),
                service_name=os.getenv("TURNLOOP_SERVICE_NAME", "sandbox"),
                project_name=os.getenv("TURNLOOP_PROJECT_NAME") or None,
            ),
            remote=RemoteSandboxOptions(
                sandbox_id=os.getenv("TURNLOOP_SANDBOX_ID") or None,
            ),
        )
