from __future__ import annotations

import asyncio

import pytest
from pydantic import BaseModel

from turnloop.tools import (
    Tool,
    ToolAlreadyRegisteredError,
    ToolContext,
    ToolExecutionError,
    ToolNotFoundError,
    ToolRegistry,
    ToolTimeoutError,
    ToolValidationError,
    tool,
)


def run_async(coro):
    return asyncio.run(coro)


class AddArgs(BaseModel):
    a: int
    b: int


class SleepArgs(BaseModel):
    seconds: float


@tool(args_model=AddArgs)
def add(args: AddArgs) -> int:
    """Add two integers.

    The rest of the docstring is not part of the description.
    """
    return args.a + args.b


@tool(args_model=AddArgs, name="add_async", description="Async adder")
async def add_async(args: AddArgs, ctx: ToolContext) -> dict:
    return {"sum": args.a + args.b, "session": ctx.session_id}


@tool(args_model=SleepArgs, name="sleepy")
async def sleepy(args: SleepArgs) -> str:
    await asyncio.sleep(args.seconds)
    return "woke"


def test_decorator_builds_spec_from_function_and_model():
    assert isinstance(add, Tool)
    assert add.spec.name == "add"
    assert add.spec.description == "Add two integers."
    assert set(add.spec.parameters_schema["properties"]) == {"a", "b"}
    assert add_async.spec.description == "Async adder"


def test_sync_and_async_tools_return_results():
    ctx = ToolContext(session_id="s-1")

    sync_res = run_async(add.call({"a": 1, "b": 2}))
    async_res = run_async(add_async.call({"a": 2, "b": 3}, ctx=ctx, tool_call_id="tu_1"))

    assert sync_res.success and sync_res.output == 3
    assert async_res.output == {"sum": 5, "session": "s-1"}
    assert async_res.tool_call_id == "tu_1"
    assert async_res.tool_name == "add_async"


def test_context_first_signature_is_supported():
    @tool(args_model=AddArgs, name="ctx_first")
    def ctx_first(ctx: ToolContext, args: AddArgs) -> str:
        return f"{ctx.request_id}:{args.a}"

    res = run_async(ctx_first.call({"a": 7, "b": 0}, ctx=ToolContext(request_id="r")))

    assert res.output == "r:7"


def test_invalid_signatures_are_rejected():
    with pytest.raises(ToolValidationError):

        @tool(args_model=AddArgs, name="bad")
        def bad(args: AddArgs, other: int) -> int:
            return 0

    with pytest.raises(ToolValidationError):

        @tool(args_model=AddArgs, name="varargs")
        def varargs(*args) -> int:
            return 0


def test_validation_failure_is_reported_not_raised():
    res = run_async(add.call({"a": "not a number"}))

    assert res.success is False
    assert "Invalid arguments for tool 'add'" in (res.error_message or "")


def test_tool_exception_is_wrapped_with_tool_name():
    @tool(args_model=AddArgs, name="divide")
    def divide(args: AddArgs) -> float:
        return args.a / args.b

    res = run_async(divide.call({"a": 1, "b": 0}))

    assert res.success is False
    assert res.error_message is not None
    assert res.error_message.startswith("Error executing tool 'divide': ")


def test_raise_on_error_propagates_typed_errors():
    @tool(args_model=AddArgs, name="strict", raise_on_error=True)
    def strict(args: AddArgs) -> int:
        raise RuntimeError("strict failure")

    with pytest.raises(ToolExecutionError, match="strict failure"):
        run_async(strict.call({"a": 1, "b": 1}))
    with pytest.raises(ToolValidationError):
        run_async(strict.call({}))


def test_tool_timeout_returns_failure():
    res = run_async(sleepy.call({"seconds": 1}, timeout=0.05))

    assert res.success is False
    assert "exceeded timeout" in (res.error_message or "")


def test_registry_registration_rules():
    registry = ToolRegistry()
    registry.register(add)

    with pytest.raises(ToolAlreadyRegisteredError):
        registry.register(add)
    registry.register(add, overwrite=True)

    assert len(registry) == 1
    assert registry.has("add")
    assert registry.names() == ["add"]

    registry.unregister("add")
    registry.unregister("add")
    assert len(registry) == 0

    with pytest.raises(ToolNotFoundError, match="Unknown tool: add"):
        registry.get("add")


def test_registry_call_records_history():
    registry = ToolRegistry(max_records=2)
    registry.register_many([add, add_async])

    async def scenario():
        await registry.call("add", {"a": 1, "b": 1}, tool_call_id="c1")
        await registry.call("add", {"a": "x"}, tool_call_id="c2")
        await registry.call("add_async", {"a": 1, "b": 2}, tool_call_id="c3")

    run_async(scenario())

    records = registry.recent_calls()
    assert [r.tool_call_id for r in records] == ["c2", "c3"]
    assert records[0].ok is False
    assert records[1].ok is True


def test_registry_timeout_raises_and_is_recorded():
    registry = ToolRegistry(default_timeout=0.05)
    registry.register(sleepy)

    with pytest.raises(ToolTimeoutError, match="timed out"):
        run_async(registry.call("sleepy", {"seconds": 1}))

    assert registry.recent_calls()[-1].ok is False


def test_registry_limits_concurrency():
    registry = ToolRegistry(max_concurrency=1)
    active = 0
    peak = 0

    @tool(args_model=SleepArgs, name="track")
    async def track(args: SleepArgs) -> None:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(args.seconds)
        active -= 1

    registry.register(track)

    async def scenario():
        await asyncio.gather(*(registry.call("track", {"seconds": 0.01}) for _ in range(4)))

    run_async(scenario())
    assert peak == 1


def test_openai_export_and_name_filter():
    registry = ToolRegistry()
    registry.register_many([add, add_async, sleepy])

    exported = registry.to_openai_function_tools()
    subset = registry.to_openai_function_tools(names=["sleepy", "add"])

    assert [t["function"]["name"] for t in exported] == ["add", "add_async", "sleepy"]
    assert all(t["type"] == "function" for t in exported)
    assert [t["function"]["name"] for t in subset] == ["add", "sleepy"]
    assert exported[0]["function"]["parameters"]["required"] == ["a", "b"]


def test_max_concurrency_must_be_positive():
    with pytest.raises(ValueError):
        ToolRegistry(max_concurrency=0)
