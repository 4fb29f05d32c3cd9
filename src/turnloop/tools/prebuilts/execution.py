from __future__ import annotations

"""
Command and filesystem tools that run through an execution adapter.
"""

from typing import Any

from pydantic import BaseModel, Field

from ...execution.base import ExecutionAdapter
from ..base import Tool, ToolContext
from ..decorator import tool
from ..errors import ToolExecutionError


class _BashArgs(BaseModel):
    command: str = Field(min_length=1)
    cwd: str | None = None
    timeout_s: float | None = Field(default=None, gt=0)


class _ReadFileArgs(BaseModel):
    path: str = Field(min_length=1)
    max_chars: int = Field(default=20_000, ge=1, le=500_000)


class _WriteFileArgs(BaseModel):
    path: str = Field(min_length=1)
    content: str


class _ListDirectoryArgs(BaseModel):
    path: str = "."
    max_entries: int = Field(default=200, ge=1, le=5000)


def build_execution_tools(adapter: ExecutionAdapter | None = None) -> list[Tool[Any, Any]]:
    """
    Build `bash`, `read_file`, `write_file` and `list_directory`.

    Each call runs on `ctx.execution` when the context carries an adapter,
    otherwise on `adapter`.
    """

    def _adapter(ctx: ToolContext) -> ExecutionAdapter:
        selected = ctx.execution or adapter
        if selected is None:
            raise ToolExecutionError("No execution adapter available for this tool call")
        return selected

    @tool(args_model=_BashArgs, name="bash")
    async def bash(args: _BashArgs, ctx: ToolContext) -> dict[str, Any]:
        """Run a shell command in the execution environment."""
        res = await _adapter(ctx).run_command(args.command, cwd=args.cwd, timeout_s=args.timeout_s)
        return {"exit_code": res.exit_code, "stdout": res.stdout, "stderr": res.stderr}

    @tool(args_model=_ReadFileArgs, name="read_file")
    async def read_file(args: _ReadFileArgs, ctx: ToolContext) -> dict[str, Any]:
        """Read a UTF-8 text file."""
        text = await _adapter(ctx).read_file(args.path)
        truncated = len(text) > args.max_chars
        if truncated:
            text = text[: args.max_chars]
        return {"path": args.path, "content": text, "truncated": truncated}

    @tool(args_model=_WriteFileArgs, name="write_file")
    async def write_file(args: _WriteFileArgs, ctx: ToolContext) -> dict[str, Any]:
        """Write a UTF-8 text file, creating parent directories."""
        await _adapter(ctx).write_file(args.path, args.content)
        return {"path": args.path, "bytes_written": len(args.content.encode("utf-8"))}

    @tool(args_model=_ListDirectoryArgs, name="list_directory")
    async def list_directory(args: _ListDirectoryArgs, ctx: ToolContext) -> dict[str, Any]:
        """List the entries of a directory."""
        rows = await _adapter(ctx).list_directory(args.path)
        entries = [
            {"name": row.name, "path": row.path, "is_dir": row.is_dir}
            for row in rows[: args.max_entries]
        ]
        return {"path": args.path, "entries": entries, "truncated": len(rows) > args.max_entries}

    return [bash, read_file, write_file, list_directory]
