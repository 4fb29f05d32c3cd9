from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Execution adapter factory.

Builds the requested backend, verifies it works and degrades to the local
backend when allowed. The local backend is the end of the chain and performs
no fallback of its own.
"""

from dataclasses import dataclass

import structlog

from ..core.telemetry import NullTelemetrySink, TelemetrySink
from .base import ExecutionAdapter, ExecutionAdapterType
from .config import ExecutionConfig
from .container import ContainerExecutionAdapter, ContainerManager
from .errors import ExecutionBackendUnavailableError, ExecutionConfigurationError
from .local import LocalExecutionAdapter
from .remote import RemoteSandboxExecutionAdapter


logger = structlog.get_logger().bind(component="execution_adapter_factory")

SMOKE_TEST_COMMAND = 'echo "container test"'


@dataclass(frozen=True, slots=True)
class AdapterSelection:
    """
    Adapter chosen by the factory.

    Attributes:
        adapter: Verified, working adapter.
        type: Backend actually in use.
        fallback_reason: Why the requested backend was abandoned, if it was.
    """

    adapter: ExecutionAdapter
    type: ExecutionAdapterType
    fallback_reason: str | None = None


class _SelectionFailed(Exception):
    """Carries the human-readable reason next to the original exception."""

    def __init__(self, reason: str, cause: BaseException) -> None:
        super().__init__(reason)
        self.reason = reason
        self.cause = cause


async def _create_container_adapter(config: ExecutionConfig) -> ContainerExecutionAdapter:
    opts = config.container
    if not opts.project_root:
        raise ExecutionConfigurationError(
            "project_root must be provided when creating a container execution adapter"
        )

    manager = ContainerManager(
        project_root=opts.project_root,
        compose_file=opts.compose_file,
        service_name=opts.service_name,
        project_name=opts.project_name,
    )

    if not await manager.is_available():
        raise ExecutionBackendUnavailableError("Container runtime is not available on this system")

    info = await manager.ensure_container()
    if info is None:
        raise ExecutionBackendUnavailableError("Failed to start the sandbox container")

    adapter = ContainerExecutionAdapter(manager)

    # runtime reachable is not enough; the container must accept commands
    try:
        result = await adapter.run_command(SMOKE_TEST_COMMAND)
    except Exception as e:
        raise _SelectionFailed(f"Container command execution failed: {e}", e) from e
    if result.exit_code != 0:
        raise ExecutionBackendUnavailableError("Sandbox container is not responding to commands")

    return adapter


async def _create_remote_adapter(config: ExecutionConfig) -> RemoteSandboxExecutionAdapter:
    sandbox_id = config.remote.sandbox_id
    if not sandbox_id:
        raise ExecutionConfigurationError("A sandbox id is required for the remote sandbox backend")
    return await RemoteSandboxExecutionAdapter.create(sandbox_id)


async def create_execution_adapter(
    config: ExecutionConfig | None = None,
    *,
    telemetry: TelemetrySink | None = None,
) -> AdapterSelection:
    """
    Return a verified adapter for the requested backend.

    With `auto_fallback` disabled any failure propagates unchanged. With it
    enabled every failure, including a missing required parameter, degrades
    to `LocalExecutionAdapter` and the reason is reported.

    Args:
        config: Backend selection; read from the environment when omitted.
        telemetry: Optional sink for the creation span and fallback counter.
    """
    config = config or ExecutionConfig.from_env()
    sink = telemetry or NullTelemetrySink()
    requested = config.backend

    span = sink.start_span(
        "execution.adapter.create",
        attributes={"requested": requested, "auto_fallback": config.auto_fallback},
    )
    logger.info("execution_adapter.create", requested=requested)

    fallback_reason: str | None = None
    try:
        if requested == "container":
            adapter: ExecutionAdapter = await _create_container_adapter(config)
            sink.end_span(span, status="ok", attributes={"selected": "container"})
            return AdapterSelection(adapter=adapter, type="container")

        if requested == "remote_sandbox":
            adapter = await _create_remote_adapter(config)
            sink.end_span(span, status="ok", attributes={"selected": "remote_sandbox"})
            return AdapterSelection(adapter=adapter, type="remote_sandbox")

        if requested != "local":
            raise ExecutionConfigurationError(f"Unknown execution backend '{requested}'")

    except Exception as e:
        original: BaseException = e.cause if isinstance(e, _SelectionFailed) else e
        reason = e.reason if isinstance(e, _SelectionFailed) else str(e)
        logger.warning(
            "execution_adapter.create_failed",
            requested=requested,
            reason=reason,
            error_type=type(original).__name__,
        )
        if not config.auto_fallback:
            sink.end_span(span, status="error", error=reason)
            raise original
        fallback_reason = reason

    if fallback_reason is not None:
        logger.warning("execution_adapter.fallback", requested=requested, reason=fallback_reason)
        sink.increment_counter(
            "execution.adapter.fallbacks",
            attributes={"requested": requested},
        )

    adapter = LocalExecutionAdapter()
    sink.end_span(
        span,
        status="ok",
        attributes={"selected": "local", "fallback": fallback_reason is not None},
    )
    return AdapterSelection(adapter=adapter, type="local", fallback_reason=fallback_reason)
