from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the types and base classes for tools that the conversation driver can invoke.
"""

import asyncio
import functools
import inspect
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Optional,
    Type,
    TypeVar,
    Union,
)

from pydantic import BaseModel, ValidationError

from .errors import ToolExecutionError, ToolTimeoutError, ToolValidationError

if TYPE_CHECKING:
    from ..core.abort import CancellationToken
    from ..execution.base import ExecutionAdapter


ArgsT = TypeVar("ArgsT", bound=BaseModel)
ReturnT = TypeVar("ReturnT")

AsyncToolFn = Callable[..., Awaitable[Any]]
SyncToolFn = Callable[..., Any]
ToolFn = Union[AsyncToolFn, SyncToolFn]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """
    Stable tool metadata used for registry listing + model-facing export.
    """

    name: str
    description: str
    parameters_schema: Dict[str, Any]  # JSON Schema for the tool's arguments


@dataclass(frozen=True, slots=True)
class ToolContext:
    """
    Contextual information available to a tool during its execution.

    `cancellation` is the session's cooperative cancellation token. Long-running
    tools may poll `cancellation.cancelled` or await `cancellation.wait()`; the
    executor never forces them to stop. `execution` is the adapter selected for
    the owning runner.
    """

    session_id: str | None = None
    tool_execution_id: str | None = None
    cancellation: CancellationToken | None = None
    execution: ExecutionAdapter | None = None
    request_id: str | None = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToolResult(Generic[ReturnT]):
    """
    Standardized result object returned by tools after execution.
    Contains the output of the tool, as well as any relevant metadata about the execution.
    """

    output: Optional[ReturnT] = None
    success: bool = True
    error_message: Optional[str] = None
    tool_name: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    tool_call_id: Optional[str] = None


def as_async(fn: ToolFn) -> AsyncToolFn:
    """
    Utility function to convert a synchronous function into an asynchronous one.
    This allows the registry and the executor to treat all tools as async.
    """
    if asyncio.iscoroutinefunction(fn):
        return fn  # type: ignore[return-value]

    async def _wrapped(*args: Any, **kwargs: Any) -> Any:
        # run sync function in threadpool
        return await asyncio.to_thread(functools.partial(fn, *args, **kwargs))

    return _wrapped


def _infer_call_style(fn: Callable[..., Any]) -> str:
    """
    Determine how to call a tool based on the signature.

    Allowed:
      (args)
      (args, ctx)
      (ctx, args)

    We accept ctx by name "ctx" OR annotation ToolContext.
    """
    sig = inspect.signature(fn)
    params = list(sig.parameters.values())

    if any(p.kind in (p.VAR_KEYWORD, p.VAR_POSITIONAL) for p in params):
        raise ToolValidationError(
            f"Tool function '{getattr(fn, '__name__', 'unknown')}' cannot have *args or **kwargs."
        )

    if len(params) == 1:
        return "args"

    if len(params) == 2:
        p0, p1 = params

        if p0.annotation in (ToolContext, "ToolContext") or p0.name == "ctx":
            return "ctx_args"

        if p1.annotation in (ToolContext, "ToolContext") or p1.name == "ctx":
            return "args_ctx"

        raise ToolValidationError(
            f"Tool function '{getattr(fn, '__name__', 'unknown')}' must include ToolContext "
            f"as 'ctx' (by name or annotation). Signature: {sig}"
        )

    raise ToolValidationError(
        f"Tool function '{getattr(fn, '__name__', 'unknown')}' has invalid signature. "
        f"Expected (args) or (args, ctx) or (ctx, args). Got {sig}."
    )


class Tool(Generic[ArgsT, ReturnT]):
    """
    Function-based tool with a pydantic argument model.

    IMPORTANT: Tool.call returns ToolResult and does NOT throw tool errors by default;
    callers inspect `ToolResult.success`.
    """

    def __init__(
        self,
        *,
        spec: ToolSpec,
        fn: ToolFn,
        args_model: Type[ArgsT],
        default_timeout: Optional[float] = None,
        raise_on_error: bool = False,
    ) -> None:
        self.spec = spec
        self._original_fn = fn
        self.fn = as_async(fn)
        self.args_model = args_model
        self.default_timeout = default_timeout
        self.raise_on_error = raise_on_error

        self._call_style = _infer_call_style(fn)

    def validate(self, raw_args: Dict[str, Any]) -> ArgsT:
        try:
            return self.args_model.model_validate(raw_args)
        except ValidationError as e:
            raise ToolValidationError(
                f"Invalid arguments for tool '{self.spec.name}': {e}"
            ) from e

    async def _invoke(self, args: ArgsT, ctx: ToolContext) -> Any:
        if self._call_style == "args":
            return await self.fn(args)
        if self._call_style == "args_ctx":
            return await self.fn(args, ctx)
        return await self.fn(ctx, args)

    def _failure(self, message: str, tool_call_id: str | None) -> ToolResult[ReturnT]:
        return ToolResult(
            output=None,
            success=False,
            error_message=message,
            tool_name=self.spec.name,
            tool_call_id=tool_call_id,
        )

    async def call(
        self,
        raw_args: Dict[str, Any],
        *,
        ctx: Optional[ToolContext] = None,
        timeout: Optional[float] = None,
        tool_call_id: Optional[str] = None,
    ) -> ToolResult[ReturnT]:
        ctx = ctx or ToolContext()

        try:
            args = self.validate(raw_args)
        except ToolValidationError as e:
            if self.raise_on_error:
                raise
            return self._failure(str(e), tool_call_id)

        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            if effective_timeout is not None:
                output = await asyncio.wait_for(self._invoke(args, ctx), timeout=effective_timeout)
            else:
                output = await self._invoke(args, ctx)

        except asyncio.TimeoutError:
            err = ToolTimeoutError(
                f"Tool '{self.spec.name}' execution exceeded timeout of {effective_timeout} seconds."
            )
            if self.raise_on_error:
                raise err
            return self._failure(str(err), tool_call_id)

        except Exception as e:
            err = ToolExecutionError(f"Error executing tool '{self.spec.name}': {e}")
            if self.raise_on_error:
                raise err from e
            return self._failure(str(err), tool_call_id)

        return ToolResult(
            output=output,
            success=True,
            error_message=None,
            tool_name=self.spec.name,
            tool_call_id=tool_call_id,
        )
