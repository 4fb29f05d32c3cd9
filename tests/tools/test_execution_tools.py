from __future__ import annotations

import asyncio

import pytest

from turnloop.execution import LocalExecutionAdapter
from turnloop.tools import ToolContext, ToolRegistry, build_execution_tools


def run_async(coro):
    return asyncio.run(coro)


@pytest.fixture
def registry(tmp_path) -> ToolRegistry:
    reg = ToolRegistry()
    reg.register_many(build_execution_tools(LocalExecutionAdapter(root_dir=tmp_path)))
    return reg


def test_builds_the_four_execution_tools(registry):
    assert registry.names() == ["bash", "read_file", "write_file", "list_directory"]
    assert registry.get("bash").spec.description == "Run a shell command in the execution environment."


def test_bash_reports_exit_code_and_streams(registry):
    res = run_async(registry.call("bash", {"command": "echo out; echo err >&2; exit 2"}))

    assert res.success
    assert res.output == {"exit_code": 2, "stdout": "out\n", "stderr": "err\n"}


def test_write_then_read_then_list(registry, tmp_path):
    async def scenario():
        written = await registry.call("write_file", {"path": "docs/notes.md", "content": "héllo"})
        read = await registry.call("read_file", {"path": "docs/notes.md", "max_chars": 2})
        listed = await registry.call("list_directory", {"path": "docs"})
        return written, read, listed

    written, read, listed = run_async(scenario())

    assert written.output == {"path": "docs/notes.md", "bytes_written": 6}
    assert read.output == {"path": "docs/notes.md", "content": "hé", "truncated": True}
    assert listed.output["truncated"] is False
    assert [(e["name"], e["is_dir"]) for e in listed.output["entries"]] == [("notes.md", False)]
    assert (tmp_path / "docs" / "notes.md").read_text(encoding="utf-8") == "héllo"


def test_list_directory_truncates(registry, tmp_path):
    for i in range(3):
        (tmp_path / f"f{i}.txt").write_text("x")

    res = run_async(registry.call("list_directory", {"path": ".", "max_entries": 2}))

    assert len(res.output["entries"]) == 2
    assert res.output["truncated"] is True


def test_context_adapter_takes_precedence(tmp_path):
    default_root = tmp_path / "default"
    ctx_root = tmp_path / "ctx"
    default_root.mkdir()
    ctx_root.mkdir()
    (ctx_root / "marker.txt").write_text("from ctx")

    read_file = build_execution_tools(LocalExecutionAdapter(root_dir=default_root))[1]
    ctx = ToolContext(execution=LocalExecutionAdapter(root_dir=ctx_root))

    res = run_async(read_file.call({"path": "marker.txt"}, ctx=ctx))

    assert res.output["content"] == "from ctx"


def test_missing_adapter_is_a_tool_failure():
    bash = build_execution_tools()[0]

    res = run_async(bash.call({"command": "true"}))

    assert res.success is False
    assert "No execution adapter available" in (res.error_message or "")


def test_missing_file_is_a_tool_failure(registry):
    res = run_async(registry.call("read_file", {"path": "nope.txt"}))

    assert res.success is False
    assert res.error_message is not None
    assert res.error_message.startswith("Error executing tool 'read_file'")


def test_empty_command_fails_validation(registry):
    res = run_async(registry.call("bash", {"command": ""}))

    assert res.success is False
    assert "Invalid arguments" in (res.error_message or "")
