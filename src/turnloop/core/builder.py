"""
Wiring helper that assembles an `AgentRunner` from configuration.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from ..execution.base import ExecutionAdapter
from ..execution.config import ExecutionConfig
from ..execution.factory import AdapterSelection, create_execution_adapter
from ..llms.client import ModelClient
from ..llms.config import LLMConfig
from ..llms.litellm_client import LiteLLMModelClient
from ..tools.prebuilts.execution import build_execution_tools
from ..tools.registry import ToolRegistry
from .abort import AbortRegistry
from .config import RunnerConfig
from .events import EventChannel
from .permissions import PermissionHandler, PermissionManager
from .runner import AgentRunner
from .telemetry import NullTelemetrySink, TelemetrySink


logger = structlog.get_logger().bind(component="runner_builder")


@dataclass(frozen=True, slots=True)
class BuiltRunner:
    """
    Runner plus the execution backend selected for it.

    Attributes:
        runner: Ready-to-use runner.
        selection: Adapter chosen by the factory, including any fallback reason.
    """

    runner: AgentRunner
    selection: AdapterSelection


async def build_agent_runner(
    *,
    model: ModelClient | None = None,
    tools: ToolRegistry | None = None,
    execution: ExecutionAdapter | None = None,
    execution_config: ExecutionConfig | None = None,
    permission_handler: PermissionHandler | None = None,
    aborts: AbortRegistry | None = None,
    events: EventChannel | None = None,
    config: RunnerConfig | None = None,
    llm_config: LLMConfig | None = None,
    telemetry: TelemetrySink | None = None,
    include_execution_tools: bool = True,
) -> BuiltRunner:
    """
    Build a runner, selecting the execution backend once.

    Args:
        model: Model client; a `LiteLLMModelClient` over `llm_config` by default.
        tools: Registry to expose; a new one when omitted.
        execution: Pre-built adapter. Skips the factory when given.
        execution_config: Backend selection; read from the environment when omitted.
        permission_handler: Approval collaborator. Without one tool calls are
            not gated.
        aborts: Shared abort registry; pass the same instance to every runner
            that must honor the same abort requests.
        include_execution_tools: Register `bash`, `read_file`, `write_file` and
            `list_directory` unless the registry already has tools of those names.
    """
    config = config or RunnerConfig()
    sink = telemetry or NullTelemetrySink()
    llm_config = llm_config or LLMConfig.from_env()

    if execution is None:
        selection = await create_execution_adapter(execution_config, telemetry=sink)
    else:
        selection = AdapterSelection(adapter=execution, type=execution.type)

    if selection.fallback_reason:
        logger.warning(
            "runner_builder.degraded_backend",
            selected=selection.type,
            reason=selection.fallback_reason,
        )

    registry = tools if tools is not None else ToolRegistry(default_timeout=config.tool_timeout_s)
    if include_execution_tools:
        for t in build_execution_tools(selection.adapter):
            if not registry.has(t.spec.name):
                registry.register(t)

    runner = AgentRunner(
        model=model or LiteLLMModelClient(llm_config),
        tools=registry,
        execution=selection.adapter,
        permissions=PermissionManager(permission_handler) if permission_handler is not None else None,
        aborts=aborts,
        events=events,
        config=config,
        telemetry=sink,
        default_model=llm_config.default_model,
    )
    return BuiltRunner(runner=runner, selection=selection)
